from typing import List, NamedTuple, Optional
import asyncio
from tubeproxy.config.settings import config
from tubeproxy.models.internal import DownloadRequest
from tubeproxy.services.format import FormatDecision

# Emitted once the file has reached its final name (after merge/remux)
FINAL_PATH_TEMPLATE = "after_move:%(.{filepath,title,ext,vcodec})j"


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def spawn(cmd: List[str]) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL
        )

    @staticmethod
    async def terminate(process: asyncio.subprocess.Process) -> None:
        """Kill the process if it is still running and reap it"""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    @staticmethod
    async def run(
        cmd: List[str],
        timeout: float
    ) -> CompletedProcess:
        """
        Run subprocess with timeout and proper cleanup.
        Prevents process leaks and ensures consistent error handling.
        """
        process = await SubprocessExecutor.spawn(cmd)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )

            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr
            )
        except BaseException:
            await SubprocessExecutor.terminate(process)
            raise


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    @staticmethod
    def _base() -> List[str]:
        cmd = [
            *config.ytdlp.command,
            '--no-playlist',
            '--no-warnings',
            '--socket-timeout', str(config.download.socket_timeout),
            '--retries', str(config.download.retries),
        ]

        if config.ytdlp.js_runtime:
            cmd.extend(['--js-runtimes', config.ytdlp.js_runtime])

        return cmd

    @staticmethod
    def build_version_command() -> List[str]:
        return [*config.ytdlp.command, '--version']

    @staticmethod
    def build_info_command(url: str) -> List[str]:
        """Build command for fetching video info"""
        cmd = YTDLPCommandBuilder._base()
        cmd.append('--dump-single-json')
        cmd.append(url)
        return cmd

    @staticmethod
    def build_download_command(
        request: DownloadRequest,
        output_template: str,
        max_filesize: Optional[str] = None
    ) -> List[str]:
        """Build command downloading one format to output_template"""
        cmd = YTDLPCommandBuilder._base()
        cmd.extend([
            '-f', FormatDecision.ytdlp_selector(request),
            '-o', output_template,
            '--print', FINAL_PATH_TEMPLATE,
            '--no-progress',
            '--no-part',
        ])

        if max_filesize:
            cmd.extend(['--max-filesize', max_filesize])

        if not config.ytdlp.enable_live_streams:
            cmd.extend(['--match-filter', '!is_live'])

        cmd.append(request.source_url)
        return cmd
