from __future__ import annotations

def _pick_glsl_version(ctx_version_code: int) -> int:
    """GLSL 330 on OpenGL >= 3.3, else 150 (the project needs at least 3.2)."""
    return 330 if ctx_version_code >= 330 else 150

_VERT_BODY = """
in vec3 in_pos;
in vec3 in_norm;
in vec2 in_uv;

uniform mat4 u_proj;
uniform mat4 u_view;
uniform mat4 u_model;

out vec3 v_world_pos;
out vec3 v_norm;
out vec2 v_uv;

void main() {
    vec4 world = u_model * vec4(in_pos, 1.0);
    v_world_pos = world.xyz;
    // uniform scale only, so the model matrix keeps normals' direction
    v_norm = mat3(u_model) * in_norm;
    v_uv = in_uv;
    gl_Position = u_proj * u_view * world;
}
"""

_FRAG_BODY = """in vec3 v_world_pos;
in vec3 v_norm;
in vec2 v_uv;

uniform vec3 u_light_dir;
uniform vec3 u_cam_pos;
uniform float u_min_height;
uniform float u_max_height;
uniform float u_fog_start;
uniform float u_fog_end;

out vec4 f_color;

// Height bands on the normalized [0,1] height, blended at the boundaries
const int BANDS = 6;
const float band_start[BANDS] = float[](0.0, 0.02, 0.10, 0.30, 0.55, 0.80);
const vec3 band_color[BANDS] = vec3[](
    vec3(0.12, 0.26, 0.55),   // deep water
    vec3(0.20, 0.40, 0.70),   // shallow water
    vec3(0.82, 0.78, 0.55),   // sand
    vec3(0.30, 0.55, 0.20),   // grass
    vec3(0.42, 0.38, 0.34),   // rock
    vec3(0.93, 0.94, 0.97)    // snow
);

vec3 height_color(float h) {
    vec3 col = band_color[0];
    for (int i = 1; i < BANDS; i++) {
        float t = smoothstep(band_start[i] - 0.02, band_start[i] + 0.02, h);
        col = mix(col, band_color[i], t);
    }
    return col;
}

void main() {
    vec3 n = normalize(v_norm);
    vec3 l = normalize(u_light_dir);
    float diff = max(dot(n, l), 0.0);

    float span = max(u_max_height - u_min_height, 1e-4);
    float h01 = clamp((v_world_pos.y - u_min_height) / span, 0.0, 1.0);
    vec3 col = height_color(h01) * (0.45 + 0.75 * diff);

    float dist = length(v_world_pos.xz - u_cam_pos.xz);
    float fog_amount = smoothstep(u_fog_start, u_fog_end, dist);
    vec3 fog_col = vec3(0.70, 0.80, 0.92);
    f_color = vec4(mix(col, fog_col, fog_amount), 1.0);
}"""

def shader_sources(ctx_version_code: int) -> tuple[str, str]:
    ver = _pick_glsl_version(ctx_version_code)
    prefix = f"#version {ver}\n"
    return prefix + _VERT_BODY, prefix + _FRAG_BODY
