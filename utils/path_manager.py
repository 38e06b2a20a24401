from pathlib import Path


# Directory structure:
# <root>/
# └── projects/
#     └── <project>/
#         ├── training-data/
#         │   └── <label>/
#         │       └── <uuid>.<ext>
#         ├── verify-data/
#         │   └── <folder>/
#         │       └── <original filename>
#         └── model/
#             ├── centroids.npz
#             └── manifest.yaml

TRAINING_DIR_NAME = "training-data"
VERIFY_DIR_NAME = "verify-data"
MODEL_DIR_NAME = "model"

MAX_NAME_LENGTH = 255


def is_valid_component(name) -> bool:
    """True if name can be used as exactly one directory or file name."""
    if not isinstance(name, str) or not name:
        return False
    if len(name) > MAX_NAME_LENGTH:
        return False
    if name in (".", ".."):
        return False
    return not any(ch in name for ch in ("/", "\\", "\x00"))


class PathManager:
    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.projects_dir = self.base_dir / "projects"

    # -------------------------------------------------------------------------
    # Project Path Methods
    # -------------------------------------------------------------------------
    def get_project_dir(self, project: str) -> Path:
        return self.projects_dir / project

    def get_training_dir(self, project: str) -> Path:
        """Returns <project>/training-data (not created)."""
        return self.get_project_dir(project) / TRAINING_DIR_NAME

    def get_verify_dir(self, project: str) -> Path:
        """Returns <project>/verify-data (not created)."""
        return self.get_project_dir(project) / VERIFY_DIR_NAME

    def get_model_dir(self, project: str) -> Path:
        """Returns <project>/model, creates if needed."""
        model_dir = self.get_project_dir(project) / MODEL_DIR_NAME
        model_dir.mkdir(parents=True, exist_ok=True)
        return model_dir

    # -------------------------------------------------------------------------
    # Label / Image Path Methods
    # -------------------------------------------------------------------------
    def get_label_dir(self, project: str, label: str) -> Path:
        return self.get_training_dir(project) / label

    def get_image_path(self, project: str, label: str, name: str) -> Path:
        return self.get_label_dir(project, label) / name

    def get_verify_folder_dir(self, project: str, folder: str) -> Path:
        return self.get_verify_dir(project) / folder

    # -------------------------------------------------------------------------
    # Root-relative resolution
    # -------------------------------------------------------------------------
    def resolve_relative(self, relative_path: str | None) -> Path | None:
        """
        Resolves a client supplied root-relative path.
        Returns None if the result would leave the dataset root.
        """
        root = self.base_dir.resolve()
        if not relative_path:
            return root
        candidate = (root / relative_path.lstrip("/\\")).resolve()
        if candidate != root and root not in candidate.parents:
            return None
        return candidate

    def relative_to_root(self, path: Path) -> str:
        """Root-relative POSIX path used in listings. path must be under the resolved root."""
        return path.relative_to(self.base_dir.resolve()).as_posix()

