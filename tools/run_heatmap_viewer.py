"""Real-time OpenGL viewer for the IDW heatmap layer.

Hosts an `InterpolateHeatmapLayer` in a moderngl-window window: the window is
the map engine, supplying the projection matrix, the canvas size and resize
events. Points are read from any vector file geopandas can open (GeoJSON,
shapefile, GeoPackage); an optional polygon file clips the surface.

Usage:
    python tools/run_heatmap_viewer.py data/foottraffic.geojson --value avg_busyness
    python tools/run_heatmap_viewer.py points.gpkg --aoi district.geojson --colormap viridis

Controls: mouse wheel=zoom, mouse drag=pan, click=print value under cursor,
S=save PNG snapshot, ESC/Q=quit.

Requirements:
    pip install -e .[viewer]
"""
import argparse
import logging
import sys

import numpy as np
import geopandas as gpd
import moderngl_window as mglw
from PIL import Image

from idwheat import InterpolateHeatmapLayer, HostSurface, ortho_matrix, web_mercator
from idwheat.reference import probe, sample_screen_uv

log = logging.getLogger('idwheat.viewer')


class WindowSurface(HostSurface):
    """Host surface backed by the viewer window; resize comes from the window."""


class HeatmapViewer(mglw.WindowConfig):
    """OpenGL window rendering the heatmap over a dark background."""

    gl_version = (3, 3)
    title = "IDW Heatmap"
    window_size = (1280, 800)
    aspect_ratio = None
    resizable = True
    viewer_context = None  # set before running

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        ctx = self.viewer_context or {}
        self.layer = ctx['layer']
        self.snapshot_path = ctx.get('snapshot', 'heatmap.png')
        self.surface = WindowSurface(*self.wnd.buffer_size)
        self.ctx.fbo.use()
        self.layer.attach(self.surface, self.ctx)
        self._setup_camera(ctx.get('extent'))
        self.fps_counter = 0
        self.fps_timer = 0.0

    def _setup_camera(self, extent):
        """Orthographic view of the Mercator square around ``extent``."""
        if extent is None:
            extent = (0.0, 1.0, 0.0, 1.0)
        left, right, top, bottom = extent
        # Mercator y grows southwards: north at the top of the window
        self.left, self.right, self.bottom, self.top = left, right, bottom, top
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0
        self._update_projection()

    def _view_box(self):
        width = (self.right - self.left) / self.zoom
        height = (self.top - self.bottom) / self.zoom
        aspect = self.wnd.buffer_size[0] / max(self.wnd.buffer_size[1], 1)
        # keep pixels square
        if abs(width) / abs(height) < aspect:
            width = abs(height) * aspect * np.sign(width)
        else:
            height = abs(width) / aspect * np.sign(height)
        cx = (self.left + self.right) / 2 + self.pan_x
        cy = (self.bottom + self.top) / 2 + self.pan_y
        return cx - width / 2, cx + width / 2, cy - height / 2, cy + height / 2

    def _update_projection(self):
        self.projection = ortho_matrix(*self._view_box())

    def on_render(self, time, frametime):
        self.ctx.fbo.use()
        self.ctx.clear(0.08, 0.08, 0.1)
        self.layer.accumulate(self.projection)
        self.layer.draw(self.projection)

        self.fps_counter += 1
        self.fps_timer += frametime
        if self.fps_timer > 1.0:
            fps = self.fps_counter / self.fps_timer
            self.wnd.title = f"IDW Heatmap - samples={len(self.layer.samples)} FPS={fps:.1f}"
            self.fps_counter = 0
            self.fps_timer = 0.0

    def on_resize(self, width, height):
        self.surface.resize(*self.wnd.buffer_size)
        self._update_projection()

    def on_key_event(self, key, action, modifiers):
        if action != self.wnd.keys.ACTION_PRESS:
            return
        if key == self.wnd.keys.S:
            self.save_snapshot(self.snapshot_path)
        elif key == self.wnd.keys.Q or key == self.wnd.keys.ESCAPE:
            self.wnd.close()

    def on_mouse_scroll_event(self, x_offset, y_offset):
        zoom_factor = 1.1 if y_offset > 0 else 0.9
        self.zoom = float(np.clip(self.zoom * zoom_factor, 0.05, 5000.0))
        self._update_projection()

    def on_mouse_drag_event(self, x, y, dx, dy):
        left, right, bottom, top = self._view_box()
        self.pan_x -= dx / self.wnd.width * (right - left)
        self.pan_y += dy / self.wnd.height * (top - bottom)
        self._update_projection()

    def on_mouse_press_event(self, x, y, button):
        samples = self.layer.samples
        if samples is None or not len(samples):
            return
        uv = sample_screen_uv(samples.positions, self.projection)
        point = (x / self.wnd.width, 1.0 - y / self.wnd.height)
        u = float(probe(uv, samples.normalized_values, self.layer.config.p, [point])[0])
        vr = samples.value_range
        log.info('value at (%d, %d): u=%.3f (~%.2f)', x, y, u, vr.min + u * vr.span)

    def save_snapshot(self, path):
        width, height = self.wnd.buffer_size
        raw = self.ctx.fbo.read(components=3)
        img = Image.frombytes('RGB', (width, height), raw).transpose(Image.FLIP_TOP_BOTTOM)
        img.save(path)
        log.info('snapshot written to %s', path)

    def on_close(self):
        self.layer.detach()


def load_points(path, value_field):
    """(lat, lon, val) rows from a point layer, reprojected to EPSG:4326."""
    gdf = gpd.read_file(path)
    if gdf.crs is not None:
        gdf = gdf.to_crs('EPSG:4326')
    gdf = gdf[gdf.geometry.geom_type == 'Point']
    vals = gdf[value_field].fillna(0).astype(float).to_numpy()
    return [{'lat': pt.y, 'lon': pt.x, 'val': v} for pt, v in zip(gdf.geometry, vals)]


def load_aoi(path):
    """First polygon of a vector file, in EPSG:4326."""
    gdf = gpd.read_file(path)
    if gdf.crs is not None:
        gdf = gdf.to_crs('EPSG:4326')
    geom = gdf.geometry.iloc[0]
    if geom.geom_type == 'MultiPolygon':
        geom = max(geom.geoms, key=lambda g: g.area)
    return geom


def main():
    parser = argparse.ArgumentParser(description='OpenGL IDW heatmap viewer')
    parser.add_argument('points', help='point layer (GeoJSON, shapefile, ...)')
    parser.add_argument('--value', '-v', default='avg_busyness', help='value attribute')
    parser.add_argument('--aoi', default=None, help='polygon layer clipping the surface')
    parser.add_argument('--colormap', default='three_band')
    parser.add_argument('--opacity', type=float, default=0.7)
    parser.add_argument('--p', default='auto', help="IDW power or 'auto'")
    parser.add_argument('--resolution-factor', default='auto', help="compute resolution or 'auto'")
    parser.add_argument('--snapshot', default='heatmap.png')
    parser.add_argument('--debug', action='store_true')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    data = load_points(args.points, args.value)
    if not data:
        log.error('no point features in %s', args.points)
        return 1
    aoi = load_aoi(args.aoi) if args.aoi else None

    def _num(v):
        return v if v == 'auto' else float(v)

    layer = InterpolateHeatmapLayer(data, aoi=aoi, opacity=args.opacity, p=_num(args.p),
                                    resolution_factor=_num(args.resolution_factor),
                                    colormap=args.colormap, debug=args.debug)

    lat = np.array([d['lat'] for d in data])
    lon = np.array([d['lon'] for d in data])
    xs, ys = web_mercator(lon, lat)
    pad = max(float(xs.max() - xs.min()), float(ys.max() - ys.min()), 1e-6) * 0.1
    extent = (float(xs.min()) - pad, float(xs.max()) + pad, float(ys.min()) - pad, float(ys.max()) + pad)

    log.info('Controls: mouse wheel=zoom, drag=pan, click=probe value, S=snapshot, ESC=quit')
    HeatmapViewer.viewer_context = {'layer': layer, 'extent': extent, 'snapshot': args.snapshot}
    mglw.run_window_config(HeatmapViewer, args=('--window', 'pygame2'))
    return 0


if __name__ == '__main__':
    sys.exit(main())
