from pathlib import Path


def get_project_root() -> Path:
    """Returns the project root directory by finding the parent of the dahua_nvr package."""
    # This file is in dahua_nvr/utils/paths.py
    current_file = Path(__file__).resolve()
    return current_file.parent.parent.parent.resolve()


def get_shared_data_path() -> Path:
    """Returns the path to the shared_data directory."""
    path = get_project_root() / "shared_data"
    path.mkdir(parents=True, exist_ok=True)
    return path
