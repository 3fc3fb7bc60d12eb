#!/usr/bin/env python3
"""
Wigle Explorer - Flask Backend

REST API over an ExplorerSession plus Socket.IO events for load progress.
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO, emit
import logging
import os
import tempfile
from datetime import datetime
from typing import Optional, Tuple

from wigle_explorer import __version__
from wigle_explorer.config import ExplorerConfig, load_config
from wigle_explorer.data_sources import WigleDatabaseSource
from wigle_explorer.exporters import to_csv, to_geojson, to_kml
from wigle_explorer.models import FilterCriteria
from wigle_explorer.session import ExplorerSession, LoadStatus

logger = logging.getLogger(__name__)

APP_NAME = "Wigle Explorer"
BUILD_TIMESTAMP_UTC = datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _criteria_from_request() -> FilterCriteria:
    return FilterCriteria.from_dict(request.args.to_dict())


def _types_from_request():
    types = request.args.get('types')
    if types is None:
        return None
    return [t.strip().upper() for t in types.split(',') if t.strip()]


def create_app(config: Optional[ExplorerConfig] = None,
               session: Optional[ExplorerSession] = None) -> Tuple[Flask, SocketIO]:
    """Build the Flask app and its Socket.IO server around one session"""
    app = Flask(__name__)
    CORS(app)
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

    session = session or ExplorerSession(config or load_config())
    app.config['EXPLORER_SESSION'] = session

    def _emit_progress(percentage: float, message: str):
        socketio.emit('load_progress', {'percentage': percentage, 'message': message})

    def _emit_finished(status: LoadStatus):
        if status is LoadStatus.READY:
            socketio.emit('load_complete', {
                'stats': session.stats(),
                'timestamp': datetime.now().isoformat()
            })
        elif status is LoadStatus.CANCELLED:
            socketio.emit('load_cancelled', {'timestamp': datetime.now().isoformat()})
        else:
            socketio.emit('load_failed', {'error': session.last_error})

    # ============= REST API Endpoints =============

    @app.route('/api/health', methods=['GET'])
    def health():
        """Health check endpoint"""
        return jsonify({
            'status': 'ok',
            'load_status': session.status.value,
            'networks_loaded': len(session.networks),
            'timestamp': datetime.now().isoformat()
        })

    @app.route('/api/version', methods=['GET'])
    def api_version():
        return jsonify({"name": APP_NAME, "version": __version__, "build_utc": BUILD_TIMESTAMP_UTC})

    @app.route('/api/load', methods=['POST'])
    def load_database():
        """Upload a WiGLE SQLite export and load it in the background"""
        if 'file' not in request.files:
            return jsonify({'error': 'No file provided'}), 400

        file = request.files['file']
        if not file.filename:
            return jsonify({'error': 'No file provided'}), 400

        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(prefix='wigle_', suffix='.sqlite')
            os.close(fd)
            file.save(temp_path)

            source = WigleDatabaseSource(temp_path, delete_on_close=True)
            session.start_load(source, on_progress=_emit_progress, on_finished=_emit_finished)
            logger.info(f"Loading uploaded database {file.filename}")

            return jsonify({'success': True, 'status': session.status.value}), 202

        except OSError as e:
            logger.error(f"Error saving upload: {e}")
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)
            return jsonify({'error': str(e)}), 500

    @app.route('/api/load/cancel', methods=['POST'])
    def cancel_load():
        cancelled = session.cancel_load()
        return jsonify({'success': cancelled, 'status': session.status.value})

    @app.route('/api/load/status', methods=['GET'])
    def load_status():
        percentage, message = session.progress
        return jsonify({
            'status': session.status.value,
            'percentage': percentage,
            'message': message,
            'error': session.last_error
        })

    @app.route('/api/data/stats', methods=['GET'])
    def get_stats():
        return jsonify(session.stats())

    @app.route('/api/data/networks', methods=['GET'])
    def get_networks():
        """Get networks matching the marker filters"""
        try:
            view = session.filtered_view(_criteria_from_request())
            return jsonify({
                'count': len(view.networks),
                'total': view.total_matches,
                'truncated': view.truncated,
                'data': [n.to_dict() for n in view.networks]
            })
        except Exception as e:
            logger.error(f"Error getting networks: {e}")
            return jsonify({'error': str(e)}), 500

    @app.route('/api/data/heatmap', methods=['GET'])
    def get_heatmap():
        try:
            intensity = float(request.args.get('intensity', 1.0))
        except ValueError:
            return jsonify({'error': 'intensity must be a number'}), 400

        points = session.heat_points(_types_from_request(), intensity)
        return jsonify({'count': len(points), 'data': points})

    @app.route('/api/data/timeline', methods=['GET'])
    def get_timeline():
        """Heat points for records seen up to ?percent= of the time range"""
        try:
            percent = float(request.args.get('percent', 100))
        except ValueError:
            return jsonify({'error': 'percent must be a number'}), 400
        if not 0 <= percent <= 100:
            return jsonify({'error': 'percent must be between 0 and 100'}), 400

        return jsonify(session.timeline_snapshot(percent, _types_from_request()))

    @app.route('/api/data/focus', methods=['GET'])
    def get_focus():
        center = session.focus_point()
        if center is None:
            return jsonify({'error': 'No data loaded'}), 400
        return jsonify({'lat': center[0], 'lon': center[1]})

    @app.route('/api/data/network/<bssid>', methods=['GET'])
    def get_network(bssid):
        network = session.focus_on_network(bssid)
        if network is None:
            return jsonify({'error': 'Network not found'}), 404
        return jsonify(network.to_dict())

    @app.route('/api/analysis', methods=['GET'])
    def get_analysis():
        """Full analysis summary of the loaded dataset"""
        if not session.has_data:
            return jsonify({'error': 'No data loaded'}), 400
        try:
            return jsonify(session.analysis().to_dict())
        except Exception as e:
            logger.error(f"Error running analysis: {e}")
            return jsonify({'error': str(e)}), 500

    @app.route('/api/export/geojson', methods=['GET'])
    def export_geojson():
        """Export filtered networks as GeoJSON"""
        view = session.filtered_view(_criteria_from_request())
        return jsonify(to_geojson(view.networks))

    @app.route('/api/export/kml', methods=['GET'])
    def export_kml():
        view = session.filtered_view(_criteria_from_request())
        return to_kml(view.networks), 200, {'Content-Type': 'application/vnd.google-earth.kml+xml'}

    @app.route('/api/export/csv', methods=['GET'])
    def export_csv():
        view = session.filtered_view(_criteria_from_request())
        return to_csv(view.networks), 200, {
            'Content-Type': 'text/csv',
            'Content-Disposition': f'attachment; filename=wigle_networks_{datetime.now().strftime("%Y%m%d_%H%M%S")}.csv'
        }

    # ============= WebSocket Events =============

    @socketio.on('connect')
    def handle_connect():
        logger.info(f"Client {request.sid} connected")
        emit('connection_response', {
            'data': f'Connected to {APP_NAME}',
            'timestamp': datetime.now().isoformat(),
            'networks_loaded': len(session.networks)
        })

    @socketio.on('request_stats')
    def handle_stats_request():
        emit('stats_update', {
            'stats': session.stats(),
            'timestamp': datetime.now().isoformat()
        })

    return app, socketio


def main():
    configure_logging(os.getenv('LOG_LEVEL', 'INFO'))

    logger.info("=" * 50)
    logger.info(f"{APP_NAME} {__version__} Starting")
    logger.info("=" * 50)

    app, socketio = create_app(load_config())

    debug = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    port = int(os.getenv('FLASK_PORT', 5000))

    socketio.run(app, host='0.0.0.0', port=port, debug=debug, allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
