#!/usr/bin/env python3
"""
Flask Web UI for the reconciliation report
Upload an identity store workbook, run the report and download the XML
"""

import os
import logging
import uuid
from pathlib import Path
from datetime import datetime
from flask import Flask, render_template, request, redirect, url_for, send_file, flash, jsonify
from werkzeug.utils import secure_filename

import connectors  # noqa: F401  registers the connector types
from core.connector import ConnectorFactory
from core.report import ReportRunner
from core.reportlet import ReconciliationReportlet
from utils.config import Config
from utils.store_loader import load_store
from utils.xml_utils import XMLFileContentSink

app = Flask(__name__)
app.secret_key = os.environ.get('FLASK_SECRET_KEY', 'change-this-secret-key')

# Configuration
app.config.setdefault('UPLOAD_FOLDER', 'uploads')
app.config.setdefault('OUTPUT_FOLDER', 'downloads')
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size
ALLOWED_EXTENSIONS = {'xlsx'}


def allowed_file(filename):
    """Check if file extension is allowed for store workbooks"""
    if '.' not in filename:
        return False
    return filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def setup_logging():
    """Setup logging for the web application"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"webapp_{timestamp}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_filename),
            logging.StreamHandler()
        ]
    )


@app.route('/')
def index():
    """Main page with upload form"""
    return render_template('index.html')


@app.route('/report', methods=['POST'])
def run_report():
    """Handle store upload and report run"""
    if 'file' not in request.files or request.files['file'].filename == '':
        flash('No file selected', 'error')
        return redirect(url_for('index'))

    file = request.files['file']
    if not allowed_file(file.filename):
        flash(f'Invalid file type. Allowed types: {", ".join(sorted(ALLOWED_EXTENSIONS))}', 'error')
        return redirect(url_for('index'))

    job_id = str(uuid.uuid4())
    upload_folder = Path(app.config['UPLOAD_FOLDER'])
    upload_folder.mkdir(parents=True, exist_ok=True)
    input_path = upload_folder / f"{job_id}_{secure_filename(file.filename)}"
    file.save(str(input_path))

    result = process_store(job_id, str(input_path), request.form)

    if result['success']:
        return render_template('results.html', job_id=job_id, **result)

    flash(f'Report failed: {result["error"]}', 'error')
    return redirect(url_for('index'))


def process_store(job_id, input_path, form):
    """Run the reconciliation report on an uploaded store workbook"""
    reported = []

    def collect(any_obj, missing, misaligned):
        reported.append({
            'kind': any_obj.kind.value,
            'key': any_obj.key,
            'missing': len(missing),
            'misaligned': len(misaligned),
        })

    try:
        app.logger.info(f"Starting report job {job_id}")
        config = Config()
        conf = config.build_reportlet_conf(
            features=form.get('features') or None,
            user_cond=form.get('user_cond') or None,
            group_cond=form.get('group_cond') or None,
            any_object_cond=form.get('any_object_cond') or None
        )
        store = load_store(input_path, config.ldap_defaults())
        store_counts = {
            'users': len(store.user_dao.find_all()),
            'groups': len(store.group_dao.find_all()),
        }
        app.logger.info(f"Job {job_id} store holds {store_counts['users']} users and {store_counts['groups']} groups")

        output_folder = Path(app.config['OUTPUT_FOLDER'])
        output_folder.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = output_folder / f"{job_id}_reconciliation_{timestamp}.xml"

        try:
            with ConnectorFactory() as connector_factory, open(output_path, 'wb') as stream:
                reportlet = ReconciliationReportlet(
                    store, connector_factory, page_size=config.page_size, listener=collect
                )
                stats = ReportRunner(conf.name, [(reportlet, conf)]).run(XMLFileContentSink(stream))[0]
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise

        app.logger.info(f"Report job {job_id} completed successfully")
        return {
            'success': True,
            'output_file': output_path.name,
            'stats': stats,
            'store_counts': store_counts,
            'reported': reported,
        }

    except Exception as e:
        app.logger.error(f"Report job {job_id} failed: {e}")
        return {'success': False, 'error': str(e)}
    finally:
        try:
            os.remove(input_path)
        except OSError as e:
            app.logger.warning(f"Could not remove upload {input_path}: {e}")


@app.route('/download/<filename>')
def download_file(filename):
    """Download a generated report"""
    file_path = Path(app.config['OUTPUT_FOLDER']) / secure_filename(filename)
    if not file_path.exists():
        flash('File not found', 'error')
        return redirect(url_for('index'))

    return send_file(file_path.resolve(), as_attachment=True, mimetype='application/xml')


@app.route('/health')
def health_check():
    """Health check endpoint"""
    config = Config()
    ldap_defaults = config.ldap_defaults()

    return jsonify({
        'status': 'healthy',
        'store_configured': config.validate_store_config(),
        'ldap_defaults': sorted(key for key in ldap_defaults if key != 'password'),
        'connector_types': sorted(ConnectorFactory.registry),
    })


if __name__ == '__main__':
    setup_logging()

    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    app.logger.info(f"Starting reconciliation report web UI on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)
