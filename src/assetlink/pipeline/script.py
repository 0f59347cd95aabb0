"""JavaScript pass-through and minification."""

from __future__ import annotations

import jsmin

from assetlink.manifest.options import ScriptOptions
from assetlink.pipeline.base import TransformOutput
from assetlink.pipeline.stylesheet import decode_text

SCRIPT_MIME = "text/javascript"


def transform_script(data: bytes, options: ScriptOptions) -> TransformOutput:
    if not options.minify:
        return TransformOutput(extension="js", data=data, mime=SCRIPT_MIME)
    minified = jsmin.jsmin(decode_text(data))
    return TransformOutput(extension="js", data=minified.encode("utf-8"), mime=SCRIPT_MIME)
