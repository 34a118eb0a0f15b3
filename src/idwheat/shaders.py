"""GLSL sources for the two passes of the heatmap layer.

Accumulation pass: one draw of the accumulation geometry per sample. The
sample position goes through the host matrix in the vertex stage; each
fragment writes ``(u_i * w_i, w_i)`` and additive blending sums them.

Draw pass: full-resolution resolve ``u = sum(u_i w_i) / max(sum(w_i), eps)``,
clamped to [0, 1] before the color transfer function sees it.
"""

from idwheat.config import GL_REQUIREMENTS, NUMERICS
from idwheat.colormaps import DEFAULT_OPACITY_GLSL

ACCUMULATE_UNIFORMS = ('u_matrix', 'u_geometry_matrix', 'u_sample_position',
                       'u_sample_value', 'u_power', 'u_framebuffer_size')
DRAW_UNIFORMS = ('u_geometry_matrix', 'u_accumulation', 'u_screen_size', 'u_opacity')
POSITION_ATTRIBUTE = 'a_position'

ACCUMULATE_VERTEX = """
{version}
uniform mat4 u_matrix;
uniform mat4 u_geometry_matrix;
uniform vec2 u_sample_position;
in vec2 a_position;
out vec2 v_sample_ndc;
void main() {{
    vec4 p = u_matrix * vec4(u_sample_position, 0.0, 1.0);
    v_sample_ndc = p.xy / p.w;
    gl_Position = u_geometry_matrix * vec4(a_position, 0.0, 1.0);
}}
"""

ACCUMULATE_FRAGMENT = """
{version}
uniform float u_sample_value;
uniform float u_power;
uniform vec2 u_framebuffer_size;
in vec2 v_sample_ndc;
out vec2 frag_value;
void main() {{
    vec2 x = gl_FragCoord.xy / u_framebuffer_size;
    vec2 xi = (v_sample_ndc + 1.0) / 2.0;
    float dist = max(distance(x, xi), {distance_epsilon:e});
    float wi = 1.0 / pow(dist, u_power);
    frag_value = vec2(u_sample_value * wi, wi);
}}
"""

DRAW_VERTEX = """
{version}
uniform mat4 u_geometry_matrix;
in vec2 a_position;
void main() {{
    gl_Position = u_geometry_matrix * vec4(a_position, 0.0, 1.0);
}}
"""

DRAW_FRAGMENT = """
{version}
{value_to_color}
{value_to_color4}
uniform sampler2D u_accumulation;
uniform vec2 u_screen_size;
uniform float u_opacity;
out vec4 frag_color;
void main() {{
    vec2 uv = gl_FragCoord.xy / u_screen_size;
    vec2 d = texture(u_accumulation, uv).xy;
    float u = d.x / max(d.y, {weight_epsilon:e});
    frag_color = value_to_color4(clamp(u, 0.0, 1.0), u_opacity);
}}
"""


def accumulate_sources(version=None):
    """(vertex, fragment) sources of the accumulation program."""
    version = version or GL_REQUIREMENTS['glsl_version']
    return (ACCUMULATE_VERTEX.format(version=version),
            ACCUMULATE_FRAGMENT.format(version=version,
                                       distance_epsilon=NUMERICS['distance_epsilon']))


def draw_sources(value_to_color, value_to_color4=None, version=None):
    """(vertex, fragment) sources of the draw program for a color transfer."""
    version = version or GL_REQUIREMENTS['glsl_version']
    return (DRAW_VERTEX.format(version=version),
            DRAW_FRAGMENT.format(version=version,
                                 value_to_color=value_to_color,
                                 value_to_color4=value_to_color4 or DEFAULT_OPACITY_GLSL,
                                 weight_epsilon=NUMERICS['weight_epsilon']))
