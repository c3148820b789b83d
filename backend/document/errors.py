"""Exceptions raised by the document core and its LLM collaborators."""


class DocumentError(Exception):
    """Base class for document-editing failures surfaced to the caller."""


class CollaboratorError(DocumentError):
    """An external collaborator (LLM) failed or returned unusable output."""


class GenerationFailedError(CollaboratorError):
    """Content generation failed or produced no usable blocks."""


class EditFailedError(CollaboratorError):
    """The edit collaborator failed or returned empty replacement text."""


class NoSelectionError(DocumentError):
    """An edit was requested while no text is selected."""


class DocumentBusyError(DocumentError):
    """Another generation or edit is already in flight for this document."""


class SelectionChangedError(DocumentError):
    """The selection was cleared or replaced while its edit was running."""
