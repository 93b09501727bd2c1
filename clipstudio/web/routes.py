"""Web API routes for ClipStudio."""

import json
import logging
import queue
import threading
import uuid
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from clipstudio.engine import Editor
from clipstudio.errors import ClipStudioError, InvalidParameters, ProbeError
from clipstudio.manifest import request_from_dict
from clipstudio.models import QualityProfile
from clipstudio.timecode import format_duration

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


def _editor() -> Editor:
    return current_app.config["EDITOR"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _path_arg(data: dict) -> Path | None:
    path = data.get("path")
    return Path(path) if isinstance(path, str) and path else None


@bp.route("/api/probe", methods=["POST"])
def probe_media():
    data = _json_body()
    path = _path_arg(data)
    if path is None:
        return jsonify({"error": "No path provided"}), 400

    try:
        facts = _editor().probe(path)
    except ProbeError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "duration": facts.duration,
        "duration_formatted": format_duration(facts.duration),
        "has_video": facts.has_video,
        "has_audio": facts.has_audio,
        "width": facts.width,
        "height": facts.height,
        "resolution": facts.resolution,
        "fps": facts.fps,
        "sample_rate": facts.sample_rate,
        "channels": facts.channels,
    })


@bp.route("/api/thumbnail", methods=["POST"])
def thumbnail():
    data = _json_body()
    path = _path_arg(data)
    if path is None:
        return jsonify({"error": "No path provided"}), 400

    try:
        thumb = _editor().thumbnail(path)
    except ClipStudioError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify({"thumbnail_path": str(thumb)})


@bp.route("/api/waveform", methods=["POST"])
def waveform():
    data = _json_body()
    path = _path_arg(data)
    if path is None:
        return jsonify({"error": "No path provided"}), 400

    try:
        samples = int(data.get("samples", 200))
    except (TypeError, ValueError):
        return jsonify({"error": "samples must be an integer"}), 400
    if samples <= 0:
        return jsonify({"error": "samples must be positive"}), 400

    try:
        values = _editor().waveform(path, samples)
    except ClipStudioError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify({"waveform": values})


@bp.route("/api/jobs", methods=["POST"])
def start_job():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    try:
        edit = request_from_dict(data)
        edit.validate()
        profile = QualityProfile.named(data.get("profile", "preview"))
    except (InvalidParameters, TypeError) as e:
        return jsonify({"error": str(e)}), 400

    output = data.get("output")
    if output is not None and not isinstance(output, str):
        return jsonify({"error": "output must be a path string"}), 400
    if not profile.is_preview and not output:
        return jsonify({"error": "Export jobs need an output path"}), 400

    editor = _editor()
    progress_queue: queue.Queue = queue.Queue()
    job = {
        "status": "processing",
        "operation": data.get("operation"),
        "profile": profile.name,
        "progress_queue": progress_queue,
        "error": None,
    }
    job_key = uuid.uuid4().hex[:12]
    _jobs[job_key] = job

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            result = editor.run(edit, profile, output, on_progress=on_progress)
            job["result"] = {
                "job_id": result.job_id,
                "output_path": str(result.output_path),
                "ephemeral": result.ephemeral,
                "expected_duration": result.expected_duration,
                "segments": result.segment_count,
            }
            job["status"] = "done"
        except ClipStudioError as e:
            job["status"] = "error"
            job["error"] = str(e)
        except Exception as e:
            logger.exception("Job %s crashed", job_key)
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"job_id": job_key, "status": "started"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    q = job["progress_queue"]

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    output_path = Path(job["result"]["output_path"])
    if not output_path.exists():
        return jsonify({"error": "Output no longer exists"}), 410
    return send_file(output_path.resolve(), as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    resp = {"status": job["status"], "operation": job["operation"], "profile": job["profile"]}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)


@bp.route("/api/previews/cleanup", methods=["POST"])
def cleanup_preview():
    path = _path_arg(_json_body())
    if path is None:
        return jsonify({"error": "No path provided"}), 400
    if not _editor().discard(path):
        return jsonify({"error": f"Could not delete {path}"}), 500
    return jsonify({"success": True})
