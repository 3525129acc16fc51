from __future__ import annotations

import enum
import logging
from typing import Any, Mapping, Optional, Protocol, Tuple

import moderngl

logger = logging.getLogger(__name__)


class MapState(enum.Enum):
    PENDING = "pending"
    MAPPED = "mapped"
    FAILED = "failed"


class DeviceBuffer(Protocol):
    size: int

    def mapped_range(self) -> memoryview:
        """Host view of a mapped buffer; only valid between map and unmap."""
        ...

    def unmap(self) -> None: ...

    def destroy(self) -> None: ...


class MapRequest(Protocol):
    error: Optional[BaseException]

    def poll(self) -> MapState:
        """Advance the transfer without blocking and report its state."""
        ...

    def cancel(self) -> bool:
        """Give up on the transfer. True when the buffer may be destroyed right away."""
        ...


class ComputeDevice(Protocol):
    def create_buffer(self, size: int) -> DeviceBuffer: ...

    def create_program(self, source: str) -> Any: ...

    def write_buffer(self, data: bytes) -> DeviceBuffer: ...

    def dispatch(
        self,
        program: Any,
        storage: Mapping[int, DeviceBuffer],
        uniforms: Mapping[str, Any],
        groups: Tuple[int, int, int],
    ) -> None: ...

    def copy_buffer(self, src: DeviceBuffer, dst: DeviceBuffer, size: int) -> None: ...

    def map_read_async(self, buffer: DeviceBuffer) -> MapRequest: ...

    def release_program(self, program: Any) -> None: ...

    def release(self) -> None: ...


class GLBuffer:
    """moderngl.Buffer plus the host copy produced by a read-back."""

    def __init__(self, gl: moderngl.Buffer) -> None:
        self.gl = gl
        self.size = int(gl.size)
        self._host: Optional[bytes] = None
        self._destroyed = False

    def mapped_range(self) -> memoryview:
        if self._host is None:
            raise RuntimeError("buffer is not mapped")
        return memoryview(self._host)

    def unmap(self) -> None:
        self._host = None

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._host = None
        self.gl.release()


class GLMapRequest:
    """Read-back of a GLBuffer. The copy happens on the first poll after submission."""

    def __init__(self, buffer: GLBuffer) -> None:
        self.buffer = buffer
        self.state = MapState.PENDING
        self.error: Optional[BaseException] = None

    def poll(self) -> MapState:
        if self.state is MapState.PENDING:
            try:
                self.buffer._host = self.buffer.gl.read()
                self.state = MapState.MAPPED
            except moderngl.Error as exc:
                self.error = exc
                self.state = MapState.FAILED
        return self.state

    def cancel(self) -> bool:
        # Nothing was read yet; releasing the GL buffer needs no wait.
        if self.state is MapState.PENDING:
            self.error = RuntimeError("read-back cancelled")
            self.state = MapState.FAILED
        return True


class ModernGLDevice:
    """Compute device over a standalone moderngl context (needs OpenGL 4.3)."""

    def __init__(self, ctx: Optional[moderngl.Context] = None) -> None:
        if ctx is None:
            try:
                ctx = moderngl.create_context(standalone=True, require=430)
            except Exception as e:
                raise RuntimeError("Failed to create ModernGL compute context (need OpenGL 4.3+)") from e
        self.ctx = ctx
        logger.debug(
            "moderngl ctx version_code=%s renderer=%s",
            ctx.version_code,
            ctx.info.get("GL_RENDERER"),
        )

    def create_buffer(self, size: int) -> GLBuffer:
        return GLBuffer(self.ctx.buffer(reserve=int(size)))

    def write_buffer(self, data: bytes) -> GLBuffer:
        return GLBuffer(self.ctx.buffer(data))

    def create_program(self, source: str) -> moderngl.ComputeShader:
        return self.ctx.compute_shader(source)

    def dispatch(
        self,
        program: moderngl.ComputeShader,
        storage: Mapping[int, GLBuffer],
        uniforms: Mapping[str, Any],
        groups: Tuple[int, int, int],
    ) -> None:
        for binding, buf in storage.items():
            buf.gl.bind_to_storage_buffer(binding)
        for name, value in uniforms.items():
            # The GLSL compiler drops uniforms the kernel never reads.
            member = program.get(name, None)
            if member is not None:
                member.value = value
        program.run(*groups)
        self.ctx.memory_barrier()

    def copy_buffer(self, src: GLBuffer, dst: GLBuffer, size: int) -> None:
        self.ctx.copy_buffer(dst.gl, src.gl, size)

    def map_read_async(self, buffer: GLBuffer) -> GLMapRequest:
        return GLMapRequest(buffer)

    def release_program(self, program: moderngl.ComputeShader) -> None:
        program.release()

    def release(self) -> None:
        self.ctx.release()

