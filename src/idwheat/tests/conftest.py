import pytest

from idwheat.diagnostics import RecordingSink
from idwheat.host import HostSurface
from idwheat.tests.fixtures.fake_gl import FakeContext


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def fake_ctx():
    return FakeContext()


@pytest.fixture
def surface():
    return HostSurface(200, 100)


@pytest.fixture(scope='session')
def gl_ctx():
    """Standalone OpenGL 3.3 context; skips when no GPU/driver is available."""
    moderngl = pytest.importorskip('moderngl')
    try:
        ctx = moderngl.create_standalone_context(require=330)
    except Exception:
        # headless machines: no X display, try EGL
        try:
            ctx = moderngl.create_standalone_context(require=330, backend='egl')
        except Exception as exc:
            pytest.skip(f'no standalone OpenGL context: {exc}')
    yield ctx
    ctx.release()
