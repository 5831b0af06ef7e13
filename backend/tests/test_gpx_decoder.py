"""Tests for gpx_decoder.py."""

import pytest

import gpx_decoder
from errors import ParseError

_HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">\n'
)


def _gpx(body: str) -> str:
    return _HEADER + body + "\n</gpx>"


_TRACK = _gpx(
    """
  <metadata><name>Ruta del Cares</name><desc>Garganta entre Poncebos y Caín</desc></metadata>
  <wpt lat="43.2600" lon="-4.8500"><ele>450</ele><name>Mirador del Cares</name></wpt>
  <wpt lat="43.2650" lon="-4.8450"><name>Puente Bolín</name><cmt>Cruce del río</cmt></wpt>
  <trk>
    <name>Cares track</name>
    <trkseg>
      <trkpt lat="43.2567" lon="-4.8500"><ele>220</ele></trkpt>
      <trkpt lat="43.2600" lon="-4.8480"><ele>350</ele></trkpt>
    </trkseg>
    <trkseg>
      <trkpt lat="43.2650" lon="-4.8450"><ele>480</ele></trkpt>
    </trkseg>
  </trk>
"""
)


def test_decode_reads_points_in_order_across_segments():
    track = gpx_decoder.decode_gpx(_TRACK)

    assert [(p.lat, p.lng) for p in track.track_points] == [
        (43.2567, -4.85),
        (43.26, -4.848),
        (43.265, -4.845),
    ]
    assert [p.elevation for p in track.track_points] == [220, 350, 480]


def test_decode_prefers_metadata_name_and_description():
    track = gpx_decoder.decode_gpx(_TRACK, filename="whatever.gpx")

    assert track.title == "Ruta del Cares"
    assert track.description == "Garganta entre Poncebos y Caín"


def test_decode_reads_waypoints_with_comment_as_description():
    track = gpx_decoder.decode_gpx(_TRACK)

    assert len(track.waypoints) == 2
    first, second = track.waypoints
    assert first.name == "Mirador del Cares"
    assert first.elevation == 450
    assert second.name == "Puente Bolín"
    assert second.description == "Cruce del río"
    assert second.elevation is None


def test_decode_accepts_bytes_with_bom():
    track = gpx_decoder.decode_gpx(("\ufeff" + _TRACK).encode("utf-8"))

    assert len(track.track_points) == 3


def test_decode_falls_back_to_track_name():
    content = _gpx(
        """
  <trk><name>Subida al Aneto</name><trkseg>
    <trkpt lat="42.63" lon="0.65"></trkpt>
  </trkseg></trk>
"""
    )
    track = gpx_decoder.decode_gpx(content, filename="aneto.gpx")

    assert track.title == "Subida al Aneto"
    assert track.track_points[0].elevation == 0.0


def test_decode_uses_filename_when_file_has_no_name():
    content = _gpx(
        """
  <trk><trkseg><trkpt lat="42.63" lon="0.65"></trkpt></trkseg></trk>
"""
    )
    track = gpx_decoder.decode_gpx(content, filename="uploads/ruta_del-cares.gpx")

    assert track.title == "ruta del cares"


def test_decode_without_any_title_source_returns_none():
    content = _gpx(
        """
  <trk><trkseg><trkpt lat="42.63" lon="0.65"></trkpt></trkseg></trk>
"""
    )
    assert gpx_decoder.decode_gpx(content).title is None


def test_decode_uses_route_points_when_no_track():
    content = _gpx(
        """
  <rte><name>Ruta planificada</name>
    <rtept lat="40.80" lon="-3.95"><ele>1800</ele></rtept>
    <rtept lat="40.81" lon="-3.96"><ele>1900</ele></rtept>
  </rte>
"""
    )
    track = gpx_decoder.decode_gpx(content)

    assert track.title == "Ruta planificada"
    assert len(track.track_points) == 2


def test_decode_raises_on_empty_content():
    with pytest.raises(ParseError):
        gpx_decoder.decode_gpx("   ")


def test_decode_raises_on_malformed_xml():
    with pytest.raises(ParseError):
        gpx_decoder.decode_gpx("<gpx><trk><trkseg>")


def test_decode_raises_when_no_points():
    content = _gpx('  <wpt lat="42.0" lon="-1.0"><name>Solo</name></wpt>')

    with pytest.raises(ParseError, match="No track or route points"):
        gpx_decoder.decode_gpx(content)


def test_title_from_filename_collapses_separators():
    assert gpx_decoder.title_from_filename("Pico__del-Lobo .gpx") == "Pico del Lobo"
