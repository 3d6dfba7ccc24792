"""CSV exchange of break schedules."""

from breakhelper.exchange.csv_rows import (
    BreakScheduleCSVRow,
    CSVRowError,
    ImportResult,
    build_import,
    export_csv,
    parse_csv,
    row_to_update_request,
    validate_rows,
    write_csv,
)

__all__ = [
    "BreakScheduleCSVRow",
    "CSVRowError",
    "ImportResult",
    "build_import",
    "export_csv",
    "parse_csv",
    "row_to_update_request",
    "validate_rows",
    "write_csv",
]
