import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # Database settings
    data_file: str = os.getenv("LIBRARY_DB_FILE", "library.sqlite")

    # Loans proposed by the menu run this many days
    loan_days: int = int(os.getenv("LIBRARY_LOAN_DAYS", "14"))

    # Import / export settings
    import_file: str = os.getenv("LIBRARY_IMPORT_FILE", "books.txt")
    export_file: str = os.getenv("LIBRARY_EXPORT_FILE", "export_book.csv")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Management System")
    log_level: str = os.getenv("LIBRARY_LOG_LEVEL", "WARNING").upper()
    output_mode: str = os.getenv("LIB_CLI_OUTPUT", "plain").lower()


settings = Settings()
