class CsvImportError(Exception):
    pass


class EmptyFileError(CsvImportError):
    def __init__(self, message: str = "CSV file is empty") -> None:
        super().__init__(message)


class SessionCommittedError(CsvImportError):
    pass
