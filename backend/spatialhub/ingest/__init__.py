# Ingestion: CSV upload -> extraction model -> validated map points
from spatialhub.ingest.csv_adapter import (
    CsvIngestionAdapter,
    IngestionError,
    IngestionParseError,
    IngestionResult,
    IngestionServiceError,
    InvalidRecord,
    ValidatedRecord,
    validate_record,
)

__all__ = [
    "CsvIngestionAdapter",
    "IngestionError",
    "IngestionParseError",
    "IngestionResult",
    "IngestionServiceError",
    "InvalidRecord",
    "ValidatedRecord",
    "validate_record",
]
