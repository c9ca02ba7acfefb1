from urllib.parse import quote

from fastapi.responses import StreamingResponse

from studyshala.models.material import MaterialFile
from studyshala.services.drive_service import DriveDownload


def content_disposition(filename: str) -> str:
    """Attachment header that survives non-ASCII file names"""
    ascii_name = filename.encode("ascii", "ignore").decode() or "download"
    ascii_name = ascii_name.replace('"', "")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def stream_download(material_file: MaterialFile, download: DriveDownload) -> StreamingResponse:
    headers = {"Content-Disposition": content_disposition(material_file.original_name)}
    if download.size is not None:
        headers["Content-Length"] = str(download.size)
    return StreamingResponse(
        download.iter_bytes(),
        media_type=material_file.mime_type or download.media_type or "application/octet-stream",
        headers=headers,
    )
