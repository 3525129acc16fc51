from __future__ import annotations

from isoterrain.world.noise import HASH_MIX, HASH_PX, HASH_PY, HASH_PZ

LOCAL_SIZE = 4  # invocations per axis in one work group

# One invocation per cell. The noise and the corner/edge conventions match
# isoterrain.world.noise and isoterrain.world.tables.
_KERNEL_BODY = """
layout(local_size_x = LOCAL_SIZE, local_size_y = LOCAL_SIZE, local_size_z = LOCAL_SIZE) in;

struct CellResult {
    uint count;
    uint pad0;
    uint pad1;
    uint pad2;
    vec4 verts[15];
};

layout(std430, binding = 0) readonly buffer EdgeTable { int edge_table[256]; };
layout(std430, binding = 1) readonly buffer TriTable { int tri_table[4096]; };
layout(std430, binding = 2) writeonly buffer Results { CellResult cells[]; };

uniform int u_res;
uniform vec3 u_origin;
uniform float u_cell_size;
uniform float u_iso;
uniform uint u_seed;
uniform float u_frequency;
uniform int u_octaves;
uniform float u_lacunarity;
uniform float u_gain;

const ivec3 CORNERS[8] = ivec3[8](
    ivec3(0, 0, 0), ivec3(1, 0, 0), ivec3(1, 0, 1), ivec3(0, 0, 1),
    ivec3(0, 1, 0), ivec3(1, 1, 0), ivec3(1, 1, 1), ivec3(0, 1, 1)
);

const ivec2 EDGES[12] = ivec2[12](
    ivec2(0, 1), ivec2(1, 2), ivec2(2, 3), ivec2(3, 0),
    ivec2(4, 5), ivec2(5, 6), ivec2(6, 7), ivec2(7, 4),
    ivec2(0, 4), ivec2(1, 5), ivec2(2, 6), ivec2(3, 7)
);

float hash01(ivec3 p) {
    uint x = (uint(p.x) * HASH_PXu) ^ (uint(p.y) * HASH_PYu) ^ (uint(p.z) * HASH_PZu) ^ u_seed;
    x ^= x >> 13u;
    x *= HASH_MIXu;
    x ^= x >> 16u;
    return float(x) / 4294967296.0;
}

float fade(float t) {
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0);
}

float value_noise(vec3 p) {
    vec3 f = floor(p);
    ivec3 i0 = ivec3(f);
    vec3 t = p - f;
    float u = fade(t.x);
    float v = fade(t.y);
    float w = fade(t.z);

    float x00 = mix(hash01(i0 + ivec3(0, 0, 0)), hash01(i0 + ivec3(1, 0, 0)), u);
    float x10 = mix(hash01(i0 + ivec3(0, 1, 0)), hash01(i0 + ivec3(1, 1, 0)), u);
    float x01 = mix(hash01(i0 + ivec3(0, 0, 1)), hash01(i0 + ivec3(1, 0, 1)), u);
    float x11 = mix(hash01(i0 + ivec3(0, 1, 1)), hash01(i0 + ivec3(1, 1, 1)), u);
    return mix(mix(x00, x10, v), mix(x01, x11, v), w);
}

float density(vec3 p) {
    float freq = u_frequency;
    float amp = 1.0;
    float total = 0.0;
    float norm = 0.0;
    for (int i = 0; i < u_octaves; ++i) {
        total += value_noise(p * freq) * amp;
        norm += amp;
        freq *= u_lacunarity;
        amp *= u_gain;
    }
    return 1.0 - 2.0 * (total / max(norm, 1e-9));
}

void main() {
    uvec3 id = gl_GlobalInvocationID;
    uint res = uint(u_res);
    if (id.x >= res || id.y >= res || id.z >= res) {
        return;
    }
    uint index = (id.x * res + id.y) * res + id.z;

    vec3 pos[8];
    float val[8];
    int config = 0;
    for (int k = 0; k < 8; ++k) {
        pos[k] = vec3(ivec3(id) + CORNERS[k]) * u_cell_size;
        val[k] = density(u_origin + pos[k]);
        if (val[k] < u_iso) {
            config |= 1 << k;
        }
    }

    cells[index].count = 0u;
    int mask = edge_table[config];
    if (mask == 0) {
        return;
    }

    vec3 points[12];
    for (int e = 0; e < 12; ++e) {
        if ((mask & (1 << e)) != 0) {
            int a = EDGES[e].x;
            int b = EDGES[e].y;
            float d = val[b] - val[a];
            float t = abs(d) < 1e-12 ? 0.5 : clamp((u_iso - val[a]) / d, 0.0, 1.0);
            points[e] = mix(pos[a], pos[b], t);
        }
    }

    uint n = 0u;
    for (int i = 0; i < 15; i += 3) {
        int e0 = tri_table[config * 16 + i];
        if (e0 < 0) {
            break;
        }
        cells[index].verts[n * 3u + 0u] = vec4(points[e0], 1.0);
        cells[index].verts[n * 3u + 1u] = vec4(points[tri_table[config * 16 + i + 1]], 1.0);
        cells[index].verts[n * 3u + 2u] = vec4(points[tri_table[config * 16 + i + 2]], 1.0);
        n += 1u;
    }
    cells[index].count = n;
}
"""


def chunk_kernel_source(glsl_version: int = 430) -> str:
    """GLSL compute shader that polygonises one chunk."""
    body = (
        _KERNEL_BODY.replace("LOCAL_SIZE", str(LOCAL_SIZE))
        .replace("HASH_PXu", f"{HASH_PX}u")
        .replace("HASH_PYu", f"{HASH_PY}u")
        .replace("HASH_PZu", f"{HASH_PZ}u")
        .replace("HASH_MIXu", f"{HASH_MIX}u")
    )
    return f"#version {int(glsl_version)}\n" + body
