"""
Export of a network view as GeoJSON, KML or CSV.
"""

import csv
import io
from typing import Dict, Sequence
from xml.sax.saxutils import escape

from wigle_explorer.classifier import classify_frequency_band, classify_security
from wigle_explorer.models import NetworkRecord, NetworkType


def _type_name(code: str) -> str:
    network_type = NetworkType.from_code(code)
    return network_type.name_friendly if network_type else code


def to_geojson(networks: Sequence[NetworkRecord]) -> Dict:
    """Export as GeoJSON FeatureCollection"""
    features = []
    for network in networks:
        properties = network.to_dict()
        properties['type_name'] = _type_name(network.type)
        properties['security'] = classify_security(network.capabilities).value
        properties['band'] = classify_frequency_band(network.frequency).value
        features.append({
            'type': 'Feature',
            'geometry': {
                'type': 'Point',
                'coordinates': [network.lon, network.lat]
            },
            'properties': properties
        })

    return {
        'type': 'FeatureCollection',
        'features': features
    }


def to_kml(networks: Sequence[NetworkRecord], title: str = "Wigle Explorer Networks") -> str:
    """Export as KML string"""
    header = f'''<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <name>{escape(title)}</name>
'''
    placemarks = []
    for network in networks:
        placemarks.append(f'''    <Placemark>
      <name>{escape(network.ssid)}</name>
      <description><![CDATA[
        BSSID: {network.bssid}
        Type: {_type_name(network.type)}
        Signal: {network.level} dBm
        Frequency: {network.frequency if network.frequency else 'N/A'} MHz
        Security: {classify_security(network.capabilities).value}
      ]]></description>
      <Point>
        <coordinates>{network.lon},{network.lat},0</coordinates>
      </Point>
    </Placemark>
''')

    footer = '''  </Document>
</kml>'''

    return header + ''.join(placemarks) + footer


def to_csv(networks: Sequence[NetworkRecord]) -> str:
    """Export as CSV string"""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([
        'bssid', 'ssid', 'type', 'lat', 'lon', 'level', 'frequency',
        'band', 'security', 'capabilities', 'last_seen'
    ])

    for network in networks:
        writer.writerow([
            network.bssid,
            network.ssid,
            network.type,
            network.lat,
            network.lon,
            network.level,
            network.frequency if network.frequency is not None else '',
            classify_frequency_band(network.frequency).value,
            classify_security(network.capabilities).value,
            network.capabilities,
            network.last_seen
        ])

    return output.getvalue()
