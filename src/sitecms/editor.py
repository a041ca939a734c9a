"""
Admin editing surface for CMS pages.

PageEditor loads all sections of a page, keeps an editable form per
section, turns uploaded files into URLs inside that form, and submits the
form through CMSClient.save. Local section state is updated optimistically
on submit, whether or not the CMS accepted the save.
"""

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from sitecms.client import CMSClient
from sitecms.exceptions import AccessDeniedError, SaveError, UploadError
from sitecms.logger import setup_logger
from sitecms.models import CMSContent
from sitecms.sections import (
    SectionRegistry,
    build_payload,
    empty_document,
    to_form,
)
from sitecms.uploads import FileSource, UploadClient

logger = setup_logger(__name__)

INVESTOR_PAGE = 'investor-relations'


class AdminSession:
    """Logged-in admin user and the pages they may edit."""

    ADMIN = 'Admin'
    INVESTORS = 'Investors'

    def __init__(self, user_type: str = ADMIN, logged_in: bool = True):
        if user_type not in (self.ADMIN, self.INVESTORS):
            raise ValueError(f"Invalid user type: {user_type}")
        self.user_type = user_type
        self.logged_in = logged_in

    def can_edit(self, page: str) -> bool:
        """Admins edit every page; investor users only the investor relations page."""
        if not self.logged_in:
            return False
        if self.user_type == self.INVESTORS:
            return page == INVESTOR_PAGE
        return True

    def logout(self) -> None:
        self.logged_in = False

    def __repr__(self) -> str:
        return f"AdminSession(user_type={self.user_type}, logged_in={self.logged_in})"


@dataclass
class SubmitResult:
    """Outcome of submitting a section form, with the message to show the operator."""

    ok: bool
    message: str
    content: Optional[CMSContent] = None
    error: Optional[SaveError] = None


class PageEditor:
    """
    Editing state for one CMS page.

    Usage:
        editor = PageEditor('technology', client, uploads)
        editor.load()
        editor.set_field('hero', 'title', 'Technology')
        result = editor.submit('hero')
        print(result.message)
    """

    def __init__(
        self,
        page: str,
        client: CMSClient,
        uploads: Optional[UploadClient] = None,
        registry: Optional[SectionRegistry] = None,
        session: Optional[AdminSession] = None,
    ):
        """
        Initialize the editor.

        Args:
            page: Page identifier
            client: CMS client used for loading and saving
            uploads: Upload client (needed for attach/remove with delete)
            registry: Section shapes (bundled sections.yaml if None)
            session: Admin session; editing is refused if it may not edit page

        Raises:
            AccessDeniedError: If the session may not edit the page
        """
        if session is not None and not session.can_edit(page):
            raise AccessDeniedError(
                f"Not allowed to edit page '{page}'",
                details={'user_type': session.user_type},
            )

        self.page = page
        self.client = client
        self.uploads = uploads
        self.registry = registry or SectionRegistry.load()
        self.session = session

        self._sections: Dict[str, Any] = {}
        self._forms: Dict[str, Dict[str, Any]] = {}
        self.loading = False

    def load(self) -> Dict[str, Any]:
        """
        Load every section of the page.

        Returns:
            Mapping of section identifier to section data
        """
        self.loading = True
        try:
            self._sections = dict(self.client.fetch_page(self.page))
        finally:
            self.loading = False

        logger.info("Loaded %d section(s) for page %s", len(self._sections), self.page)
        return dict(self._sections)

    def refresh(self) -> Dict[str, Any]:
        """Reload page content; pending form edits are kept."""
        return self.load()

    @property
    def sections(self) -> Dict[str, Any]:
        return dict(self._sections)

    def get_field_value(self, section: str, field: Optional[str] = None) -> Any:
        """
        Read a loaded value.

        Args:
            section: Section identifier
            field: Field name, or None for the whole section

        Returns:
            Field value ('' when missing), section data, or None for a
            missing section when no field was asked for
        """
        data = self._sections.get(section)
        if not data:
            return '' if field else None
        if field:
            return data.get(field) or ''
        return data

    def form(self, section: str) -> Dict[str, Any]:
        """Editable form values for a section, created from loaded data on first use."""
        if section not in self._forms:
            schema = self.registry.get(self.page, section)
            self._forms[section] = to_form(schema, self._sections.get(section))
        return self._forms[section]

    def set_field(self, section: str, name: str, value: Any) -> None:
        self.form(section)[name] = value

    def set_document(self, section: str, slot: int, **values: str) -> Dict[str, Any]:
        """
        Update a document slot (1-based) of a document section.

        Returns:
            The updated document
        """
        documents = self.form(section).setdefault('documents', [])
        while len(documents) < slot:
            documents.append(empty_document())
        documents[slot - 1] = {**documents[slot - 1], **values}
        return documents[slot - 1]

    def discard(self, section: Optional[str] = None) -> None:
        """Drop pending form edits for a section (or all sections)."""
        if section is None:
            self._forms.clear()
        else:
            self._forms.pop(section, None)

    def _require_uploads(self) -> UploadClient:
        if self.uploads is None:
            raise UploadError("No upload client configured")
        return self.uploads

    def attach_upload(self, section: str, field: str, source: FileSource, kind: str = 'image') -> str:
        """
        Upload a file and put its URL into a form field.

        Args:
            section: Section identifier
            field: Form field receiving the URL (e.g. 'imageUrl')
            source: File path or binary file object
            kind: 'image' or 'file'

        Returns:
            Uploaded file URL

        Raises:
            UploadError: If the upload fails; the form is left unchanged
        """
        uploads = self._require_uploads()
        url = uploads.upload_image(source) if kind == 'image' else uploads.upload_file(source)
        self.set_field(section, field, url)
        logger.info("Attached %s to %s/%s.%s", url, self.page, section, field)
        return url

    def attach_document(self, section: str, slot: int, source: FileSource) -> Dict[str, Any]:
        """
        Upload a document into a document slot, filling its name from the
        file name when the slot has none.

        Returns:
            The updated document
        """
        url = self._require_uploads().upload_file(source)
        document = self.form(section).get('documents', [])
        current = document[slot - 1] if 0 < slot <= len(document) else empty_document()

        values = {'url': url}
        if not current.get('name'):
            filename = Path(str(getattr(source, 'name', source))).name
            values['name'] = Path(filename).stem
        return self.set_document(section, slot, **values)

    def remove_file(self, section: str, field: str, delete: bool = False) -> bool:
        """
        Clear a file URL from a form field.

        Args:
            section: Section identifier
            field: Form field holding the URL
            delete: Also delete the uploaded file from the CMS

        Returns:
            False only if a requested delete failed
        """
        form = self.form(section)
        url = form.get(field) or ''
        form[field] = ''

        if delete and url:
            return self._require_uploads().delete_file(url)
        return True

    def submit(self, section: str, form: Optional[Dict[str, Any]] = None) -> SubmitResult:
        """
        Save a section form.

        Args:
            section: Section identifier
            form: Form values replacing the pending form (pending form if None)

        Returns:
            SubmitResult whose message is meant to be shown verbatim
        """
        if form is not None:
            self._forms[section] = dict(form)

        schema = self.registry.get(self.page, section)
        payload = build_payload(schema, self.form(section))

        try:
            content = self.client.save(self.page, section, payload)
        except SaveError as e:
            # The client already kept the edit in the local cache
            self._sections[section] = copy.deepcopy(payload)
            logger.warning("Save of %s/%s failed: %s", self.page, section, e.message)
            return SubmitResult(ok=False, message=self._failure_message(e), error=e)

        self._sections[section] = copy.deepcopy(content.data)
        self._forms[section] = to_form(schema, content.data)
        return SubmitResult(ok=True, message="Changes saved successfully!", content=content)

    @staticmethod
    def _failure_message(error: SaveError) -> str:
        if error.network_error:
            return (
                f"Connection Error: {error.message}\n\n"
                "Your changes have been saved to local storage."
            )
        return f"Error: {error.message}"

    def __repr__(self) -> str:
        return f"PageEditor(page={self.page}, sections={len(self._sections)})"
