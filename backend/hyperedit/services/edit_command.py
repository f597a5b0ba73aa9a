"""In-place edits of a session's working video.

``build_edit_args`` compiles a typed EditRequest into an ffmpeg argument
list. ``LegacyCommandTemplate`` keeps the old free-form
``ffmpeg -i input.mp4 ... output.mp4`` endpoint working; it is deprecated
and should not grow new features.
"""

import logging
import shlex
import warnings
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from hyperedit.exceptions import InvalidEditCommandError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.render.filter_graph import FilterStage, format_number
from hyperedit.schemas.edit import EditRequest, FilterStageSpec
from hyperedit.utils.media_info import probe_duration
from hyperedit.utils.temp_files import TempFileScope

if TYPE_CHECKING:
    from hyperedit.services.session_manager import Session

logger = logging.getLogger(__name__)

ArgsBuilder = Callable[[Path, Path], list[str]]


def _chain(specs: list[FilterStageSpec]) -> str:
    return ",".join(
        FilterStage(spec.name, tuple(spec.args), dict(spec.params)).serialize()
        for spec in specs
    )


def build_edit_args(request: EditRequest, input_path: Path, output_path: Path) -> list[str]:
    """Compile an EditRequest into ffmpeg arguments (deterministic)."""
    args = ["-i", str(input_path)]
    if request.trim_start is not None:
        args.extend(["-ss", format_number(request.trim_start)])
    if request.trim_end is not None:
        args.extend(["-to", format_number(request.trim_end)])

    if request.video_filters:
        args.extend(["-vf", _chain(request.video_filters)])
    args.extend(["-c:v", request.video_codec])
    if request.video_codec != "copy":
        args.extend(["-preset", request.preset, "-crf", str(request.crf), "-pix_fmt", "yuv420p"])

    if request.mute:
        args.append("-an")
    else:
        if request.audio_filters:
            args.extend(["-af", _chain(request.audio_filters)])
        args.extend(["-c:a", request.audio_codec])
        if request.audio_codec != "copy":
            args.extend(["-b:a", request.audio_bitrate])

    args.extend(["-movflags", "+faststart", str(output_path)])
    return args


class LegacyCommandTemplate:
    """Deprecated: turns ``ffmpeg -i input.mp4 ... output.mp4`` into args.

    The template is tokenized with shlex and the placeholder tokens are
    swapped for real paths. Nothing else in the template may name a file.
    """

    INPUT_PREFIX = "input."
    OUTPUT_PREFIX = "output."
    FORBIDDEN = set(";&|`$<>")
    # Options that make ffmpeg read or write files other than the placeholders
    FORBIDDEN_OPTIONS = {
        "-filter_script", "-filter_complex_script", "-attach", "-dump_attachment",
        "-passlogfile", "-progress", "-vstats_file", "-report",
    }

    @classmethod
    def _is_placeholder(cls, token: str, prefix: str) -> bool:
        if not token.lower().startswith(prefix):
            return False
        ext = token[len(prefix):]
        return 1 <= len(ext) <= 5 and ext.isalnum()

    @classmethod
    def to_args(cls, command: str, input_path: Path, output_path: Path) -> list[str]:
        warnings.warn(
            "Templated edit commands are deprecated; send a structured 'edit' instead",
            DeprecationWarning,
            stacklevel=2,
        )
        logger.warning("[EDIT] Legacy templated command used")

        if any(ch in cls.FORBIDDEN for ch in command):
            raise InvalidEditCommandError("Command contains shell metacharacters")
        try:
            tokens = shlex.split(command)
        except ValueError as e:
            raise InvalidEditCommandError(f"Could not parse command: {e}")
        if tokens and Path(tokens[0]).name in ("ffmpeg", "ffmpeg.exe"):
            tokens = tokens[1:]
        if not tokens:
            raise InvalidEditCommandError("Command is empty")

        args: list[str] = []
        saw_input = saw_output = False
        for index, token in enumerate(tokens):
            if token in cls.FORBIDDEN_OPTIONS:
                raise InvalidEditCommandError(f"Option not allowed: {token}")
            if "movie=" in token:
                raise InvalidEditCommandError("Filters that open files are not allowed")
            if cls._is_placeholder(token, cls.INPUT_PREFIX):
                args.append(str(input_path))
                saw_input = True
            elif cls._is_placeholder(token, cls.OUTPUT_PREFIX):
                args.append(str(output_path))
                saw_output = True
            else:
                if index > 0 and tokens[index - 1] == "-i":
                    raise InvalidEditCommandError("Only the input placeholder may be used with -i")
                if token == "-y":
                    continue
                args.append(token)

        if not saw_input or not saw_output:
            raise InvalidEditCommandError(
                "Command must reference both the input and output placeholders"
            )
        if args[-1] != str(output_path):
            raise InvalidEditCommandError("The output placeholder must be the last argument")
        return args


class EditService:
    def __init__(self, runner: FFmpegRunner):
        self.runner = runner

    async def apply(self, session: "Session", build_args: ArgsBuilder) -> tuple[float, int]:
        """Run an edit on the working video and swap the result in.

        Args:
            session: Session whose working video is edited
            build_args: Called with (input, output) to produce ffmpeg args

        Returns:
            (new duration in seconds, new size in bytes)
        """
        async with session.lock:
            source = session.require_working_video()
            with TempFileScope(session.root, prefix=".edit") as scope:
                output = scope.path("out", ".mp4")
                args = build_args(source, output)
                await self.runner.run(args, label=f"edit {session.id}")
                await session.replace_working_video(output)
                scope.release(output)
            duration = await probe_duration(session.working_video)
            size = session.working_video.stat().st_size
        logger.info(
            f"[EDIT] Session {session.id}: edit #{session.edit_count} applied ({duration:.2f}s)"
        )
        return duration, size


def args_builder_for(
    edit: Optional[EditRequest], command: Optional[str]
) -> ArgsBuilder:
    """Pick the structured builder or the legacy template shim."""
    if edit is not None:
        return lambda src, out: build_edit_args(edit, src, out)
    if command is None:
        raise InvalidEditCommandError("Provide either 'edit' or 'command'")
    return lambda src, out: LegacyCommandTemplate.to_args(command, src, out)
