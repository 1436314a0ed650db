"""
Model persistence for trained HMMs.

A model ``name`` is stored as two files in the models directory:

- ``<name>.pkl``: the HiddenMarkovModel, compressed with joblib
- ``<name>_meta.json``: caller metadata (typically ``TrainingResult.to_dict()``)
  plus a ``model_parameters`` block recording the state count, emission
  family and emission shape

The ``model_parameters`` block is checked against the unpickled model on
load, which catches sidecars that were copied or edited out of sync.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import joblib
import numpy as np

from ..exceptions import PersistenceError
from ..hmm.model import HiddenMarkovModel
from ..logger import get_logger

logger = get_logger(__name__)


class ModelFiles(NamedTuple):
    model: Path
    metadata: Path


def _jsonable(value: Any) -> Any:
    """Recursively convert numpy containers and scalars to JSON types."""
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def describe_model(model: HiddenMarkovModel) -> Dict[str, Any]:
    """Shape summary stored in, and checked against, the metadata sidecar."""
    return {
        'n_states': model.n_states,
        'emission_family': model.emission[0].family,
        'emission_shape': list(model.emission[0].shape)
    }


class ModelPersistence:
    """Saves, loads, lists and deletes models in one directory."""

    def __init__(self, models_dir: str = "models"):
        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Model directory: {self.models_dir}")

    def files_for(self, name: str) -> ModelFiles:
        """
        Paths for a model name. Spaces and hyphens become underscores, other
        non-word characters are dropped and the result is lowercased.

        Raises:
            PersistenceError: If nothing usable is left of the name
        """
        stem = re.sub(r'[^0-9a-zA-Z_]', '', re.sub(r'[\s-]', '_', name)).lower()
        if not stem:
            raise PersistenceError(f"Invalid model name: {name!r}")
        return ModelFiles(self.models_dir / f"{stem}.pkl", self.models_dir / f"{stem}_meta.json")

    def save_model(self,
                   name: str,
                   model: HiddenMarkovModel,
                   metadata: Optional[Dict[str, Any]] = None,
                   overwrite: bool = False) -> ModelFiles:
        """
        Write a model and its metadata sidecar.

        Args:
            name: Model name
            model: HiddenMarkovModel to store
            metadata: Extra JSON-compatible metadata; numpy values are converted
            overwrite: Replace existing files instead of failing

        Returns:
            ModelFiles with the written paths

        Raises:
            PersistenceError: If a file exists (without overwrite) or writing fails
        """
        files = self.files_for(name)

        if not overwrite:
            existing = [str(path) for path in files if path.exists()]
            if existing:
                raise PersistenceError(f"Model {name} already exists: {existing}")

        record = _jsonable(metadata or {})
        record.update({
            'name': name,
            'saved_at': datetime.now().isoformat(),
            'model_file': files.model.name,
            'model_class': type(model).__name__,
            'model_parameters': describe_model(model)
        })

        try:
            joblib.dump(model, files.model, compress=3)
            with open(files.metadata, 'w', encoding='utf-8') as f:
                json.dump(record, f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save model {name}: {e}")

        logger.info(f"Saved model {name} to {files.model}")
        return files

    def load_model(self, name: str):
        """
        Read a model and its metadata.

        Returns:
            Tuple of (HiddenMarkovModel, metadata dict)

        Raises:
            PersistenceError: If files are missing, unreadable or inconsistent
        """
        files = self.files_for(name)
        for kind, path in zip(("Model", "Metadata"), files):
            if not path.exists():
                raise PersistenceError(f"{kind} file not found: {path}")

        try:
            model = joblib.load(files.model)
            with open(files.metadata, 'r', encoding='utf-8') as f:
                metadata = json.load(f)
        except Exception as e:
            raise PersistenceError(f"Failed to load model {name}: {e}")

        if not isinstance(model, HiddenMarkovModel):
            raise PersistenceError(f"{files.model} is not a HiddenMarkovModel: {type(model).__name__}")

        recorded = metadata.get('model_parameters', {})
        for key, value in describe_model(model).items():
            if recorded.get(key) != value:
                raise PersistenceError(
                    f"Model {key} mismatch: metadata={recorded.get(key)}, model={value}"
                )

        logger.info(f"Loaded model {name}: {model!r}")
        return model, metadata

    def list_available_models(self) -> List[Dict[str, Any]]:
        """Summaries of every stored model, sorted by file name."""
        summaries = []
        for model_file in sorted(self.models_dir.glob("*.pkl")):
            metadata_file = model_file.with_name(f"{model_file.stem}_meta.json")
            summary = {
                'name': model_file.stem,
                'model_file': str(model_file),
                'size_mb': model_file.stat().st_size / (1024 * 1024),
                'metadata_exists': metadata_file.exists()
            }

            if summary['metadata_exists']:
                try:
                    metadata = json.loads(metadata_file.read_text(encoding='utf-8'))
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Unreadable metadata {metadata_file}: {e}")
                    summary['metadata_error'] = True
                else:
                    for key in ('model_parameters', 'status', 'final_log_likelihood', 'saved_at'):
                        summary[key] = metadata.get(key)

            summaries.append(summary)
        return summaries

    def delete_model(self, name: str) -> bool:
        """Remove a model's files. Returns False if there was nothing to delete."""
        removed = []
        for path in self.files_for(name):
            if path.exists():
                path.unlink()
                removed.append(path.name)

        if not removed:
            logger.warning(f"No files found for model {name}")
            return False

        logger.info(f"Deleted model {name}: {removed}")
        return True
