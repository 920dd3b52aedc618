"""
Upload endpoint: media files into the input tree, or a folder thumbnail.
"""
import asyncio

from aiohttp import BodyPartReader, web

from mshelf_backend.path_utils import normalize_logical_path
from mshelf_backend.shared import ErrorCode, Result, UploadType, get_logger, sanitize_error_message

from ..core import _json_response, _require_services

logger = get_logger(__name__)

_TEXT_FIELDS = ("path", "type")


def register_upload_routes(routes: web.RouteTableDef) -> None:
    @routes.post("/api/upload")
    async def upload(request: web.Request) -> web.Response:
        """
        Multipart upload.

        Parts: one or more ``file`` parts plus optional ``path`` / ``type`` text
        parts (query params of the same names take precedence). ``type`` is
        ``media`` (default) or ``folderThumb``.
        """
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        if not request.content_type.startswith("multipart/"):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Expected multipart/form-data"))

        intake = svc.intake
        staging = await asyncio.to_thread(intake.new_staging_dir)
        try:
            fields: dict[str, str] = {}
            staged = []
            reader = await request.multipart()
            async for part in reader:
                if not isinstance(part, BodyPartReader):
                    continue
                if part.name == "file":
                    written = await intake.stage_part(staging, part.filename, part)
                    if not written.ok:
                        return _json_response(written)
                    staged.append(written.data)
                elif part.name in _TEXT_FIELDS:
                    fields[part.name] = (await part.text()).strip()
                else:
                    await part.release()

            folder = normalize_logical_path(request.query.get("path", fields.get("path", "")))
            if folder is None:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Invalid path"))
            try:
                upload_type = UploadType(request.query.get("type") or fields.get("type") or UploadType.MEDIA.value)
            except ValueError:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Unknown upload type"))
            if not staged:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Expected at least one 'file' part"))

            if upload_type is UploadType.FOLDER_THUMB:
                made = await intake.ingest_folder_thumbnail(staged[0], folder)
                if not made.ok:
                    return _json_response(made)
                return _json_response(Result.Ok({"accepted": [staged[0].name], "type": upload_type.value}))

            result = await intake.ingest_media(staged, folder)
            if not result.ok:
                return _json_response(result)
            return _json_response(Result.Ok({"accepted": result.data, "type": upload_type.value}))
        except ValueError as exc:
            # Malformed multipart framing
            logger.warning("Rejected malformed upload: %s", exc)
            return _json_response(Result.Err(ErrorCode.UPLOAD_FAILED, sanitize_error_message(exc, "Upload failed")))
        finally:
            await asyncio.to_thread(intake.discard_staging, staging)
