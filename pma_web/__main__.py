from pma_web.app_factory import create_app

if __name__ == "__main__":
    app = create_app()
    app.run(host=app.config["HOST"], port=app.config["PORT"], debug=app.config["DEBUG"])

#############################
#
# Key design patterns used
# •	Application Factory: create_app() builds the app and dependencies.
# •	Dependency Injection (manual): settings go into AuditClient, the client into each AuditOrchestrator.
# •	Service Layer: AuditClient owns the Gemini call, AuditOrchestrator owns the idle/analyzing/success/error lifecycle.
# •	Repository: SessionRepository keeps one orchestrator per browser session, in memory.
######################################################################
# High-level architecture
# •	Presentation (Flask blueprint + index.html)
#    |
#    v
# Orchestration (AuditOrchestrator, per session)
#    |
#    v
# Service (AuditClient -> encode_asset, build_prompt)
#    |
#    v
# External System (Gemini generateContent over HTTPS)
# ________________________________________
# Runtime request flow
# •	GET /            renders the form with whatever the session holds
# •	POST /audit      copies form fields/uploads into the session, runs one audit, re-renders
# •	POST /reset      clears inputs, result and error
# •	GET /api/state   JSON snapshot of the session
# •	POST /api/audit  same as /audit, JSON out
# ________________________________________
