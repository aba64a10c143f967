import logging
from typing import List, Optional

from ..core.exceptions import ExecutionFailure
from ..core.models import ActionResult, OperationPreset, OperationType
from ..infrastructure.surface import ScriptSurface
from .compiler import ScriptCompiler

logger = logging.getLogger(__name__)


def default_presets() -> List[OperationPreset]:
    """Example presets offered when the user has none yet."""
    return [
        OperationPreset(id="1", label="Click #login", type=OperationType.CLICK, selector="#login"),
        OperationPreset(id="2", label="Type into #q", type=OperationType.TYPE, selector="#q", value="hello"),
        OperationPreset(id="3", label="Extract .price", type=OperationType.EXTRACT_TEXT, selector=".price"),
    ]


class PresetRunner:
    """Compiles a preset and evaluates it on the page."""

    def __init__(self, compiler: Optional[ScriptCompiler] = None):
        self.compiler = compiler or ScriptCompiler()

    async def run(
        self,
        preset: OperationPreset,
        surface: Optional[ScriptSurface]
    ) -> Optional[ActionResult]:
        """
        Run ``preset`` against the current page.

        Args:
            preset: Operation to execute
            surface: Page script surface; None makes this a no-op

        Returns:
            ActionResult with the script's return value in ``data["result"]``,
            or None when there is no surface
        """
        if surface is None:
            return None

        script = self.compiler.compile(preset)
        try:
            result = await surface.evaluate_script(script)
        except ExecutionFailure as e:
            logger.warning(f"Preset '{preset.label}' failed: {e.message}")
            return ActionResult(
                success=False,
                message=f"Operation failed: {e.message}",
                error=e.error_code
            )

        logger.info(f"Preset '{preset.label}' -> {result!r}")
        return ActionResult(
            success=True,
            message=f"Operation result: {result if result is not None else 'done'}",
            data={"result": result}
        )
