import os

import pandas as pd

SUPPORTED_EXTENSIONS = (".csv", ".parquet", ".xlsx")


def records_from_frame(df: pd.DataFrame) -> list[dict]:
    """Turn a frame into ordered records with missing cells as ``None``."""
    if df is None or df.shape[1] == 0:
        return []
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict("records")


class RecordsLoader:
    def __init__(self, path: str):
        self.path = path
        _, ext = os.path.splitext(path)
        self.ext = ext.lower()

        if self.ext not in SUPPORTED_EXTENSIONS:
            raise ValueError("Unsupported file type (use .csv, .parquet, or .xlsx)")

    def load_frame(self) -> pd.DataFrame:
        if not os.path.exists(self.path) or os.path.getsize(self.path) == 0:
            return pd.DataFrame()

        if self.ext == ".csv":
            try:
                return pd.read_csv(self.path)
            except pd.errors.EmptyDataError:
                return pd.DataFrame()
        if self.ext == ".parquet":
            self._ensure_parquet_engine()
            return pd.read_parquet(self.path)
        self._ensure_excel_engine()
        return pd.read_excel(self.path)

    def _ensure_parquet_engine(self):
        try:
            import pyarrow  # noqa: F401
        except ImportError:
            raise ValueError("Parquet support requires pyarrow. Install via: pip install pyarrow")

    def _ensure_excel_engine(self):
        try:
            import openpyxl  # noqa: F401
        except ImportError:
            raise ValueError("XLSX support requires openpyxl. Install via: pip install openpyxl")

    def load(self) -> tuple[list[dict], list[str]]:
        """Return ``(records, column_keys)``."""
        df = self.load_frame()
        columns = [str(c) for c in df.columns]
        df.columns = columns
        return records_from_frame(df), columns
