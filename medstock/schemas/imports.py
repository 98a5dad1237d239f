from pydantic import BaseModel, Field


class RowError(BaseModel):
    row: int = Field(description="Spreadsheet line number; the header is line 1.")
    message: str


class BatchResult(BaseModel):
    succeeded: int = 0
    errors: list[RowError] = Field(default_factory=list)

    def add_error(self, row: int, message: str) -> None:
        self.errors.append(RowError(row=row, message=message))
