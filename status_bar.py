import os
import time


def render_status(context, width):
    """
    context keys: status_msg, status_until, file_path, selection_mode,
                  group_columns, selected_rows, selected_cells, visible_start,
                  visible_end, total_rows, is_dragging
    """
    text = ""
    now = time.time()
    if context.get("status_msg") and now < context.get("status_until", 0):
        text = f" {context['status_msg']}"
    else:
        mode = str(context.get("selection_mode", "none")).upper()
        if context.get("is_dragging"):
            mode = f"{mode}:DRAG"
        fname = context.get("file_path") or ""
        if fname:
            fname = os.path.basename(fname)
        groups = context.get("group_columns") or []
        group_info = f"by {', '.join(groups)}" if groups else "ungrouped"
        sel_rows = context.get("selected_rows", 0)
        sel_cells = context.get("selected_cells", 0)
        total_rows = context.get("total_rows", 0)
        start = context.get("visible_start", 0)
        end = context.get("visible_end", start)
        view_info = f"rows {start}-{max(start, end - 1)} of {total_rows}"
        text = f" {mode} | {fname} | {group_info} | sel {sel_rows}r/{sel_cells}c | {view_info}"

    return text.ljust(width)[:width]


def status_context(controller, file_path=None):
    snap = controller.selection.snapshot()
    visible = controller.visible_rows()
    return {
        "file_path": file_path,
        "selection_mode": snap.mode,
        "is_dragging": snap.is_dragging,
        "group_columns": list(controller.engine.config.columns),
        "selected_rows": len(snap.selected_rows),
        "selected_cells": len(snap.selected_cells),
        "visible_start": visible[0][0] if visible else 0,
        "visible_end": visible[-1][0] + 1 if visible else 0,
        "total_rows": len(controller.display_rows),
    }
