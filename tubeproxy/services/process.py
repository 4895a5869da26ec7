import asyncio
import json
import logging
import os
import secrets
import time
from typing import AsyncIterator, List, Optional, Tuple

import aiofiles

from tubeproxy.config.settings import config
from tubeproxy.core.errors import (
    ClientDisconnected,
    ExtractorUnavailable,
    classify_extractor_error,
    classify_skipped_download,
)
from tubeproxy.models.internal import DownloadRequest, FormatSelector, StreamHandle, remove_temp_file
from tubeproxy.models.response import VideoMetadata, has_track
from tubeproxy.services.extractor import DisconnectProbe, ExtractorBackend, ensure_not_live, parse_info
from tubeproxy.services.format import FormatDecision
from tubeproxy.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder
from tubeproxy.utils.filename import sanitize_filename, with_extension
from tubeproxy.utils.media import media_type_for

logger = logging.getLogger(__name__)

DISCONNECT_POLL_INTERVAL = 0.5


def new_token() -> str:
    """Millisecond timestamp plus random suffix; unique across concurrent requests"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


def token_files(temp_dir: str, token: str) -> List[str]:
    """All files in temp_dir that belong to token"""
    prefix = f"{token}."
    try:
        names = os.listdir(temp_dir)
    except FileNotFoundError:
        return []
    return sorted(os.path.join(temp_dir, name) for name in names if name.startswith(prefix))


def remove_token_files(temp_dir: str, token: str) -> None:
    for path in token_files(temp_dir, token):
        remove_temp_file(path)


def owned_by(path: str, temp_dir: str, token: str) -> bool:
    """True if path is a regular file directly in temp_dir named for token"""
    real = os.path.realpath(path)
    return (
        os.path.dirname(real) == temp_dir
        and os.path.basename(real).startswith(f"{token}.")
        and os.path.isfile(real)
    )


async def read_file_chunks(path: str, chunk_size: int) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk


async def _wait_for_disconnect(is_disconnected: DisconnectProbe) -> None:
    while not await is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


class ProcessExtractor(ExtractorBackend):
    """yt-dlp CLI backend: one temp file per download, relayed once the process exits"""

    name = "process"

    async def fetch_metadata(self, url: str) -> VideoMetadata:
        cmd = YTDLPCommandBuilder.build_info_command(url)

        try:
            result = await SubprocessExecutor.run(cmd, timeout=config.download.info_timeout_seconds)
        except FileNotFoundError as e:
            raise ExtractorUnavailable(reason=f"yt-dlp not found: {e}")
        except asyncio.TimeoutError:
            raise ExtractorUnavailable(reason="metadata lookup timed out")

        if result.returncode != 0:
            raise classify_extractor_error(result.stderr.decode(errors="ignore").strip())

        try:
            info = json.loads(result.stdout.decode(errors="ignore"))
        except json.JSONDecodeError:
            raise ExtractorUnavailable(reason="failed to parse yt-dlp output")

        metadata = parse_info(info)
        ensure_not_live(info)
        return metadata

    async def open_stream(
        self,
        request: DownloadRequest,
        is_disconnected: Optional[DisconnectProbe] = None
    ) -> StreamHandle:
        os.makedirs(config.download.temp_dir, exist_ok=True)
        temp_dir = os.path.realpath(config.download.temp_dir)
        token = new_token()
        output_template = os.path.join(temp_dir, f"{token}.%(ext)s")

        cmd = YTDLPCommandBuilder.build_download_command(
            request,
            output_template,
            FormatDecision.max_filesize(request)
        )
        logger.info(f"Downloading {request.source_url} ({request.selection}) to {output_template}")

        try:
            stdout, stderr = await self._run_to_completion(cmd, is_disconnected)
            path, title, ext, vcodec = self._locate_output(stdout, stderr, temp_dir, token)

            # Intermediate files from merges/remuxes are not ours to serve
            for leftover in token_files(temp_dir, token):
                if leftover != path:
                    remove_temp_file(leftover)

            if vcodec is not None:
                has_video = has_track(vcodec)
            else:
                has_video = not (request.itag is None and request.selector == FormatSelector.AUDIO)
            handle = StreamHandle(
                chunks=read_file_chunks(path, config.download.chunk_size),
                media_type=media_type_for(ext, has_video=has_video),
                filename=self._download_name(request, title, ext, token),
                content_length=os.path.getsize(path),
                temp_path=path,
            )
        except BaseException:
            remove_token_files(temp_dir, token)
            raise

        logger.info(f"Download finished. {handle.content_length / 1024 / 1024:.1f} MB ready in {path}")
        return handle

    async def _run_to_completion(
        self,
        cmd: List[str],
        is_disconnected: Optional[DisconnectProbe]
    ) -> Tuple[bytes, bytes]:
        """
        Wait for yt-dlp to exit. A client disconnect or the configured timeout
        kills the process instead.
        """
        try:
            process = await SubprocessExecutor.spawn(cmd)
        except FileNotFoundError as e:
            raise ExtractorUnavailable(reason=f"yt-dlp not found: {e}")

        communicate = asyncio.ensure_future(process.communicate())
        watcher = asyncio.ensure_future(_wait_for_disconnect(is_disconnected)) if is_disconnected else None
        tasks = [t for t in (communicate, watcher) if t is not None]

        try:
            done, _ = await asyncio.wait(
                tasks,
                timeout=config.download.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED
            )

            if communicate not in done:
                if watcher is not None and watcher in done:
                    watcher.result()
                    raise ClientDisconnected(reason="client disconnected while extractor was running")
                raise ExtractorUnavailable(
                    reason=f"extractor timed out after {config.download.timeout_seconds}s"
                )

            stdout, stderr = communicate.result()
        finally:
            for task in tasks:
                task.cancel()
            await SubprocessExecutor.terminate(process)
            await asyncio.gather(*tasks, return_exceptions=True)

        if process.returncode != 0:
            error_summary = stderr.decode(errors="ignore").strip()
            logger.error(f"yt-dlp exited with {process.returncode}: {error_summary[-500:]}")
            raise classify_extractor_error(error_summary)

        return stdout, stderr

    def _locate_output(
        self,
        stdout: bytes,
        stderr: bytes,
        temp_dir: str,
        token: str
    ) -> Tuple[str, Optional[str], str, Optional[str]]:
        """
        Resolve the final output file. The path printed by yt-dlp is trusted
        only if it belongs to this request's token; otherwise scan by token.
        Returns (path, title, ext, vcodec).
        """
        output = stdout.decode(errors="ignore")
        printed = {}
        for line in reversed(output.splitlines()):
            line = line.strip()
            if not line.startswith("{"):
                continue
            try:
                parsed = json.loads(line)
            except ValueError:
                continue
            if isinstance(parsed, dict):
                printed = parsed
                break

        path = printed.get("filepath")
        if path and owned_by(path, temp_dir, token):
            real = os.path.realpath(path)
            return real, printed.get("title"), printed.get("ext") or _ext_of(real), printed.get("vcodec")
        if path:
            logger.warning(f"Ignoring reported output path not owned by token {token}: {path}")

        candidates = [p for p in token_files(temp_dir, token) if os.path.isfile(p)]
        if not candidates:
            # Exit 0 without a file: a --match-filter or --max-filesize skip
            raise classify_skipped_download(f"{output}\n{stderr.decode(errors='ignore')}")

        path = candidates[0]
        return path, None, _ext_of(path), printed.get("vcodec")

    @staticmethod
    def _download_name(request: DownloadRequest, title: Optional[str], ext: str, token: str) -> str:
        name = sanitize_filename(request.filename or title or "")
        if not name:
            kind = "audio" if request.selector == FormatSelector.AUDIO else "video"
            name = f"{kind}_{token}"
        return with_extension(name, ext)


def _ext_of(path: str) -> str:
    return os.path.splitext(path)[1].lstrip(".") or "bin"
