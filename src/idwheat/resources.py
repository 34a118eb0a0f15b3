"""
resources.py

Ownership of every GPU object the heatmap layer allocates.

`GpuResources.allocate(...)` builds both programs, the vertex/index buffers
and vertex arrays, and the accumulation buffer in one step. If any step
fails, whatever was already created is released before the error
propagates, so a half-built instance never escapes. `release()` frees
everything and is safe to call more than once.

The accumulation buffer (a 2-channel float32 texture with its framebuffer)
is the only object that changes after allocation: `resize_buffer(size)`
replaces it, discarding the old contents.
"""

from typing import Iterable, Optional, Tuple
import logging

import moderngl
import numpy as np

from idwheat.config import GL_REQUIREMENTS
from idwheat.errors import CapabilityError, ResourceLookupError, ShaderBuildError
from idwheat.shaders import (ACCUMULATE_UNIFORMS, DRAW_UNIFORMS, POSITION_ATTRIBUTE,
                             accumulate_sources, draw_sources)

logger = logging.getLogger(__name__)

ACCUMULATION_COMPONENTS = 2
ACCUMULATION_DTYPE = 'f4'


def check_capabilities(ctx, required_extensions: Iterable[str] = None) -> None:
    """Raise `CapabilityError` if ``ctx`` cannot accumulate into float targets."""
    min_version = GL_REQUIREMENTS['min_version_code']
    version = int(getattr(ctx, 'version_code', 0) or 0)
    if version < min_version:
        raise CapabilityError(f'OpenGL {min_version // 100}.{(min_version % 100) // 10} required, '
                              f'context provides version code {version}')
    if required_extensions is None:
        required_extensions = GL_REQUIREMENTS['required_extensions']
    available = set(getattr(ctx, 'extensions', ()) or ())
    missing = sorted(set(required_extensions) - available)
    if missing:
        raise CapabilityError(f'missing required extensions: {", ".join(missing)}')


def build_program(ctx, vertex_shader: str, fragment_shader: str, uniforms: Iterable[str],
                  optional: Iterable[str] = (), label: str = 'program'):
    """Compile/link a program and verify its inputs.

    Every name in ``uniforms`` plus the position attribute must be an active
    member of the linked program. Names in ``optional`` may be missing
    (a custom shader may not read them).
    """
    try:
        program = ctx.program(vertex_shader=vertex_shader, fragment_shader=fragment_shader)
    except moderngl.Error as exc:
        raise ShaderBuildError(f'{label}: shader build failed: {exc}') from exc
    missing = [name for name in (*uniforms, POSITION_ATTRIBUTE)
               if name not in optional and program.get(name, None) is None]
    if missing:
        program.release()
        raise ResourceLookupError(f'{label}: missing shader inputs after linking: {", ".join(missing)}')
    return program


def buffer_size(width: int, height: int, factor: float) -> Tuple[int, int]:
    """Accumulation buffer size: ``ceil(w * factor) x ceil(h * factor)``, at least 1x1."""
    # round first: 200 * 0.3 is 60.00000000000001 in binary floating point
    w = int(np.ceil(round(max(int(width), 0) * factor, 9)))
    h = int(np.ceil(round(max(int(height), 0) * factor, 9)))
    return max(w, 1), max(h, 1)


class GpuResources:
    """Handles of one layer instance. Built with `allocate`."""

    def __init__(self, ctx):
        self.ctx = ctx
        self.accumulate_program = None
        self.draw_program = None
        self.accumulate_vbo = None
        self.accumulate_ibo = None
        self.draw_vbo = None
        self.draw_ibo = None
        self.accumulate_vao = None
        self.draw_vao = None
        self.texture = None
        self.framebuffer = None
        self.buffer_size: Optional[Tuple[int, int]] = None
        self.released = False

    @classmethod
    def allocate(cls, ctx, *, draw_vertices, draw_indices, accumulate_vertices, accumulate_indices,
                 size, value_to_color: str, value_to_color4: Optional[str] = None,
                 required_extensions=None) -> 'GpuResources':
        check_capabilities(ctx, required_extensions)
        res = cls(ctx)
        try:
            res.accumulate_program = build_program(ctx, *accumulate_sources(), ACCUMULATE_UNIFORMS,
                                                   label='accumulate')
            # custom opacity functions may ignore u_opacity
            res.draw_program = build_program(ctx, *draw_sources(value_to_color, value_to_color4),
                                             DRAW_UNIFORMS,
                                             optional=('u_opacity',) if value_to_color4 else (),
                                             label='draw')
            res.draw_vbo, res.draw_ibo, res.draw_vao = res._mesh(res.draw_program, draw_vertices, draw_indices)
            res.accumulate_vbo, res.accumulate_ibo, res.accumulate_vao = res._mesh(
                res.accumulate_program, accumulate_vertices, accumulate_indices)
            res.resize_buffer(size)
        except Exception:
            res.release()
            raise
        return res

    def _mesh(self, program, vertices, indices):
        verts = np.ascontiguousarray(vertices, dtype='f4').reshape(-1, 2)
        inds = np.ascontiguousarray(indices, dtype='u4').ravel()
        vbo = self.ctx.buffer(verts.tobytes())
        ibo = self.ctx.buffer(inds.tobytes())
        vao = self.ctx.vertex_array(program, [(vbo, '2f', POSITION_ATTRIBUTE)],
                                    index_buffer=ibo, index_element_size=4)
        return vbo, ibo, vao

    def resize_buffer(self, size) -> bool:
        """Reallocate the accumulation buffer at ``size``. False if unchanged."""
        size = (int(size[0]), int(size[1]))
        if self.framebuffer is not None and self.buffer_size == size:
            return False
        self._release_buffer()
        texture = self.ctx.texture(size, ACCUMULATION_COMPONENTS, dtype=ACCUMULATION_DTYPE)
        texture.filter = (moderngl.NEAREST, moderngl.NEAREST)
        texture.repeat_x = False
        texture.repeat_y = False
        try:
            framebuffer = self.ctx.framebuffer(color_attachments=[texture])
        except moderngl.Error as exc:
            texture.release()
            raise CapabilityError(f'float accumulation framebuffer incomplete: {exc}') from exc
        self.texture = texture
        self.framebuffer = framebuffer
        self.buffer_size = size
        return True

    def _release_buffer(self):
        for name in ('framebuffer', 'texture'):
            obj = getattr(self, name)
            if obj is not None:
                obj.release()
                setattr(self, name, None)
        self.buffer_size = None

    @property
    def ready(self) -> bool:
        return (not self.released and self.framebuffer is not None
                and self.accumulate_vao is not None and self.draw_vao is not None)

    def release(self) -> None:
        self._release_buffer()
        for name in ('accumulate_vao', 'draw_vao', 'accumulate_vbo', 'accumulate_ibo',
                     'draw_vbo', 'draw_ibo', 'accumulate_program', 'draw_program'):
            obj = getattr(self, name)
            if obj is not None:
                obj.release()
                setattr(self, name, None)
        self.released = True
