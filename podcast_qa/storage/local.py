import os

from .base import BaseStorage


class LocalStorage(BaseStorage):
    """Artifact storage on the local filesystem, rooted at `base_dir`."""

    def __init__(self, base_dir: str = "."):
        self.base_dir = base_dir

    def _get_absolute_filename(self, workspace: str, filename: str) -> str:
        workspace = self._normalize_workspace(workspace)
        return os.path.abspath(f"{workspace}{filename}")

    def file_exist(self, workspace: str, filename: str) -> bool:
        return os.path.isfile(self._get_absolute_filename(workspace, filename))

    def create_workspace(self, name: str) -> str:
        """Creates `base_dir/name/` on the local filesystem."""
        workspace_path = self._normalize_workspace(os.path.join(self.base_dir, name))
        try:
            os.makedirs(workspace_path, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Error creating local workspace directory: {e}") from e
        return workspace_path

    def save_file(self, workspace: str, filename: str, content: str) -> str:
        path = self._get_absolute_filename(workspace, filename)
        try:
            with open(path, "w", encoding="utf-8") as file:
                file.write(content)
        except OSError as e:
            raise RuntimeError(f"Error saving file to local storage: {e}") from e
        return path

    def read_file(self, workspace: str, filename: str) -> str:
        path = self._get_absolute_filename(workspace, filename)
        try:
            with open(path, "r", encoding="utf-8") as file:
                return file.read()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise RuntimeError(f"Error reading file from local storage: {e}") from e
