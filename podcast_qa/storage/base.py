from abc import ABC, abstractmethod


class BaseStorage(ABC):
    """
    Abstract base class for artifact storage.

    Transcript records and other intermediate artifacts are written through
    this interface so the pipeline does not care whether they land on the
    local filesystem or in an S3-compatible bucket.
    """

    @abstractmethod
    def file_exist(self, workspace: str, filename: str) -> bool:
        """
        Check if a file exists.

        Args:
            workspace (str): The workspace (prefix) path.
            filename (str): The name of the file.

        Returns:
            bool: True if the file exists, False otherwise.
        """

    @abstractmethod
    def create_workspace(self, name: str) -> str:
        """Create (if needed) and return a workspace prefix.

        Args:
            name (str): Workspace name, e.g. "transcripts".

        Returns:
            str: The workspace path/prefix, always ending with "/".

        Raises:
            RuntimeError: If workspace creation fails.
        """

    @abstractmethod
    def save_file(self, workspace: str, filename: str, content: str) -> str:
        """Saves a text file to the specified workspace.

        Args:
            workspace (str): The workspace (prefix) path.
            filename (str): The name of the file to save.
            content (str): The content to save.

        Returns:
            str: The full path or URL of the saved file.

        Raises:
            RuntimeError: If file saving fails.
        """

    @abstractmethod
    def read_file(self, workspace: str, filename: str) -> str:
        """Read a text file from the specified workspace.

        Raises:
            FileNotFoundError: If the file does not exist.
            RuntimeError: If reading fails for another reason.
        """

    @abstractmethod
    def _get_absolute_filename(self, workspace: str, filename: str) -> str:
        """Constructs the absolute filename/path."""

    @staticmethod
    def _normalize_workspace(workspace: str) -> str:
        return workspace if workspace.endswith("/") else workspace + "/"
