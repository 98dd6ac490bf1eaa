"""
Template Store

Reads PDF templates from the templates directory. Templates are
addressed by the relative file_path stored on a template record.
"""

import logging
from pathlib import Path
from typing import List, Union

from .exceptions import NotFoundError, ValidationError
from .types import ContractTemplate

logger = logging.getLogger(__name__)


class TemplateStore:
    """
    File-backed PDF template store.

    Usage:
        store = TemplateStore('pdfs')
        pdf_bytes = store.read('hd-docs-english.pdf')
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def resolve(self, file_path: str) -> Path:
        """
        Resolve a relative template path inside the templates directory.

        Raises:
            ValidationError: If the path is empty or escapes the directory
        """
        if not file_path or not str(file_path).strip():
            raise ValidationError("Template file path is required", field='file_path')

        candidate = (self.root / str(file_path).lstrip('/')).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise ValidationError(f"Invalid template path: {file_path}", field='file_path')
        return candidate

    def exists(self, file_path: str) -> bool:
        try:
            return self.resolve(file_path).is_file()
        except ValidationError:
            return False

    def read(self, file_path: str) -> bytes:
        """
        Read template bytes.

        Raises:
            NotFoundError: If the template file does not exist
        """
        path = self.resolve(file_path)
        if not path.is_file():
            logger.error(f"PDF template not found: {path}")
            raise NotFoundError(
                f"PDF template not found: {file_path}",
                resource='template',
                resource_id=file_path
            )
        data = path.read_bytes()
        logger.debug(f"Loaded template {file_path} ({len(data)} bytes)")
        return data

    def read_template(self, template: ContractTemplate) -> bytes:
        return self.read(template.file_path)

    def list_files(self) -> List[str]:
        """Relative paths of every PDF in the templates directory."""
        if not self.root.exists():
            logger.warning(f"Templates directory not found: {self.root}")
            return []
        return sorted(
            str(path.relative_to(self.root))
            for path in self.root.rglob('*.pdf')
        )
