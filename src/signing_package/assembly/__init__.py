"""Package assembly: template sources, sequencing, flattening and merging."""

from .cover import COVER_FILE_NAME, render_info_cover
from .pipeline import build_archive, extract_page, flatten_document, merge_flattened
from .sequencer import ManifestSequencer, SequenceResult, condition_met, fill_or_static
from .sources import (
    LocalTemplateSource,
    S3TemplateSource,
    TemplateSource,
    get_template_source,
    prefetch,
)

__all__ = [
    "COVER_FILE_NAME",
    "render_info_cover",
    "build_archive",
    "extract_page",
    "flatten_document",
    "merge_flattened",
    "ManifestSequencer",
    "SequenceResult",
    "condition_met",
    "fill_or_static",
    "LocalTemplateSource",
    "S3TemplateSource",
    "TemplateSource",
    "get_template_source",
    "prefetch",
]
