"""Custom exceptions for BudgetHelper"""


class BudgetHelperError(Exception):
    """Base exception for all BudgetHelper errors"""
    pass


class SheetSyncError(BudgetHelperError):
    """A Google Sheets request failed during push or pull"""
    def __init__(self, message: str, spreadsheet_id: str = None):
        super().__init__(message)
        self.spreadsheet_id = spreadsheet_id


class ConfigError(BudgetHelperError):
    """Configuration is missing or unusable"""
    pass
