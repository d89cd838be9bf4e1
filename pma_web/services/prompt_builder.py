from __future__ import annotations

DEFAULT_GOAL = "General System Health Check"
NO_LOGS_NOTE = "Note: No sensor logs provided."

RESPONSE_KEYS = ("anomaly_detection", "root_cause_analysis", "prescribed_fix")

PREAMBLE = (
    "You are an expert Senior Manufacturing Auditor AI. Your task is to execute a "
    "multi-modal audit protocol using the provided machine data.\n\n"
)

PROTOCOL = """Process the inputs (Video, Logs, Blueprint) and generate a response by strictly following these three agentic steps:

  Step 1: Anomaly Detection (Target: Video File)
  - Analyze the video file for any abnormal movement, oscillation, smoke, or sound.
  - Provide a timestamped summary of these observed anomalies (e.g., "00:15 - Irregular spindle wobble detected").

  Step 2: Root Cause Analysis (Target: Video + Logs)
  - Cross-reference the detected video anomalies with the specific time and data points in the Sensor/Log Data.
  - Identify correlations between visual events and log metrics (e.g., temperature spikes, vibration Hz, error codes).
  - Determine the definitive root cause of the anomaly (e.g., "Overheating caused by bearing friction").

  Step 3: Prescribed Fix (Target: Blueprint + Goal + Root Cause)
  - Based on the root cause and the Diagnostic Goal, analyze the Machine Blueprint (Image).
  - Identify the exact physical location and part number required for the repair on the schematic.
  - Output this as a numbered list of actionable repair steps.

  Output Format:
  Provide the response in strict JSON format with the following keys. Use Markdown within the strings for formatting.
"""


def build_prompt(log_text: str, diagnostic_goal: str) -> str:
    log_text = log_text or ""
    goal = (diagnostic_goal or "").strip() or DEFAULT_GOAL

    if log_text.strip():
        context = f"--- START SENSOR/LOG DATA ---\n{log_text}\n--- END SENSOR/LOG DATA ---\n\n"
    else:
        context = f"{NO_LOGS_NOTE}\n\n"

    keys = "\n".join(f"  - {k}" for k in RESPONSE_KEYS)

    return (
        PREAMBLE
        + context
        + f"Diagnostic Goal (Vibe Code): {goal}\n\n"
        + PROTOCOL
        + keys
    )
