"""
Alerting and follow-up planning driven by compatibility scores.

Modules
-------
planner  : NotificationPlanner.evaluate() (score-tier trigger rules,
           team broadcast, email escalation) + send_custom() /
           notify_workflow_update() / cleanup_expired().
workflow : plan_workflow() — pure day-offset nurturing schedule with
           keyword-bucket template selection.
"""
