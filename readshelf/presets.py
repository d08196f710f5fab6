"""
Presets Service - saved view criteria.

User presets live in a single YAML file next to the configuration. Built-in
presets are always available and cannot be overwritten.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import yaml

from .criteria import BUILTIN_CRITERIA, Criteria, get_builtin_criteria, is_builtin_criteria

logger = logging.getLogger(__name__)


class PresetService:
    """
    Service for managing saved criteria presets.

    Provides:
    - CRUD operations for user presets
    - Lookup across built-in and user presets
    - Import/export of single presets as YAML
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    # =========================================================================
    # Storage
    # =========================================================================

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        presets = data.get('presets') or {}
        if not isinstance(presets, dict):
            raise ValueError(f"Malformed presets file: {self.path}")
        return presets

    def _store(self, presets: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            yaml.safe_dump({'presets': presets}, f, default_flow_style=False,
                           allow_unicode=True, sort_keys=True)

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    def get(self, name: str) -> Optional[Criteria]:
        """Get a preset (built-in or user) by name."""
        builtin = get_builtin_criteria(name)
        if builtin is not None:
            return builtin
        entry = self._load().get(name)
        if entry is None:
            return None
        return Criteria.from_dict(entry.get('criteria'))

    def require(self, name: str) -> Criteria:
        criteria = self.get(name)
        if criteria is None:
            raise ValueError(f"Preset '{name}' not found")
        return criteria

    def list(self, include_builtin: bool = True) -> List[Dict[str, Any]]:
        """
        List presets with metadata.

        Args:
            include_builtin: Whether to include built-in presets

        Returns:
            List of preset info dicts, built-ins first
        """
        presets = []

        if include_builtin:
            for name, preset in BUILTIN_CRITERIA.items():
                presets.append({
                    'name': name,
                    'description': preset['description'],
                    'builtin': True,
                    'criteria': preset['criteria'],
                })

        for name, entry in sorted(self._load().items()):
            presets.append({
                'name': name,
                'description': entry.get('description') or '',
                'builtin': False,
                'criteria': Criteria.from_dict(entry.get('criteria')),
            })

        return presets

    def save(
        self,
        name: str,
        criteria: Criteria,
        description: Optional[str] = None,
        overwrite: bool = False
    ) -> Criteria:
        """
        Save criteria under a name.

        Raises:
            ValueError: If the name is reserved, or taken and ``overwrite`` is False
        """
        if not name:
            raise ValueError("Preset name must not be empty")
        if is_builtin_criteria(name):
            raise ValueError(f"Cannot save preset with reserved name '{name}'")

        presets = self._load()
        if name in presets and not overwrite:
            raise ValueError(f"Preset '{name}' already exists. Use overwrite=True to replace.")

        presets[name] = {
            'description': description,
            'criteria': criteria.to_dict(),
        }
        self._store(presets)
        logger.info(f"Saved preset '{name}'")
        return criteria

    def delete(self, name: str) -> bool:
        """
        Delete a user preset.

        Returns:
            True if deleted, False if not found
        """
        if is_builtin_criteria(name):
            raise ValueError(f"Cannot delete built-in preset '{name}'")

        presets = self._load()
        if name not in presets:
            return False

        del presets[name]
        self._store(presets)
        logger.info(f"Deleted preset '{name}'")
        return True

    # =========================================================================
    # Import/Export
    # =========================================================================

    def export_yaml(self, name: str) -> str:
        """Export a preset as a standalone YAML document."""
        if is_builtin_criteria(name):
            data = {
                'name': name,
                'builtin': True,
                'description': BUILTIN_CRITERIA[name]['description'],
                'criteria': BUILTIN_CRITERIA[name]['criteria'].to_dict(),
            }
        else:
            entry = self._load().get(name)
            if entry is None:
                raise ValueError(f"Preset '{name}' not found")
            data = {
                'name': name,
                'description': entry.get('description'),
                'criteria': entry.get('criteria') or {},
            }

        return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def import_yaml(self, yaml_content: str, overwrite: bool = False) -> Criteria:
        """
        Import a preset from YAML produced by ``export_yaml``.

        Raises:
            ValueError: On missing name, reserved name or invalid criteria
        """
        data = yaml.safe_load(yaml_content)
        if not isinstance(data, dict):
            raise ValueError("Preset YAML must be a mapping")

        name = data.get('name')
        if not name:
            raise ValueError("Preset YAML must include 'name' field")

        criteria = Criteria.from_dict(data.get('criteria') or {})
        return self.save(name, criteria, description=data.get('description'), overwrite=overwrite)

    def import_file(self, path: Path, overwrite: bool = False) -> Criteria:
        """Import a preset from a YAML file."""
        with open(path) as f:
            return self.import_yaml(f.read(), overwrite=overwrite)

    def export_file(self, name: str, path: Path) -> None:
        """Export a preset to a YAML file."""
        yaml_content = self.export_yaml(name)
        with open(path, 'w') as f:
            f.write(yaml_content)
