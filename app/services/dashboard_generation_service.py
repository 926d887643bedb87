"""
Nexus Compliance - Dashboard Data Generation Service

Synthesizes demo data for personalized dashboards with an LLM. Eleven
sections are generated concurrently; any section whose call fails falls
back to a static object so one bad response never sinks the dashboard.
"""

import asyncio
import json
import logging
import random
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import settings
from app.services.nexus_engine.state_rules import STATE_NAMES
from app.utils.error_handling import OpenAIAPIException

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a helpful assistant that generates realistic business client data for CPA firms. "
    "Always respond with valid JSON only."
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_llm_json(text: Optional[str]) -> Any:
    """
    Parse a model reply as JSON, falling back to the outermost {...} block.

    Raises:
        OpenAIAPIException: If no JSON can be recovered
    """
    if not text:
        raise OpenAIAPIException("Empty response from model")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError as e:
                raise OpenAIAPIException("No valid JSON found in response", e) from e
        raise OpenAIAPIException("No valid JSON found in response")


async def call_llm(prompt: str) -> Any:
    """Send one prompt to the chat completions API and return parsed JSON."""
    if not settings.openai_configured:
        raise OpenAIAPIException("OPENAI_API_KEY is not configured")

    import openai

    client = openai.AsyncOpenAI(api_key=settings.openai_api_key)
    try:
        response = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            response_format={"type": "json_object"},
        )
    except openai.OpenAIError as e:
        raise OpenAIAPIException(str(e), e) from e

    return parse_llm_json(response.choices[0].message.content)


def normalize_form_data(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill defaults so prompts and fallbacks never see missing keys."""
    data = dict(form_data or {})

    def as_list(value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return [str(v) for v in value]

    data["clientName"] = data.get("clientName") or "Client"
    data["priorityStates"] = as_list(data.get("priorityStates"))
    data["painPoints"] = as_list(data.get("painPoints"))
    data.setdefault("multiStateClientCount", 0)
    data.setdefault("annualRevenue", "")
    data.setdefault("industry", "")
    data.setdefault("businessModel", "")
    data.setdefault("currentChallenges", "")
    return data


# ===========================================
# PROMPTS
# ===========================================

def _states(form: Dict[str, Any]) -> str:
    return ", ".join(form["priorityStates"])


def _pain_points(form: Dict[str, Any]) -> str:
    return ", ".join(form["painPoints"])


def client_info_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate detailed client information for a tax compliance dashboard based on the following form data:

Client Name: {form['clientName']}
Priority States: {_states(form)}
Pain Points: {_pain_points(form)}
Multi-State Client Count: {form['multiStateClientCount']}
Annual Revenue: {form['annualRevenue']}
Industry: {form['industry']}
Business Model: {form['businessModel']}
Current Challenges: {form['currentChallenges']}

Generate realistic client information including:
- Business profile details
- Industry-specific characteristics
- Revenue patterns
- Geographic presence
- Compliance history
- Risk factors

Return as a JSON object with realistic business data.
"""


def key_metrics_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate key performance metrics for {form['clientName']} based on:
- Annual Revenue: {form['annualRevenue']}
- Industry: {form['industry']}
- Multi-state operations in: {_states(form)}
- Pain Points: {_pain_points(form)}

Include realistic metrics for:
- Revenue by state
- Compliance scores
- Risk assessments
- Performance indicators
- Growth metrics

Return as a JSON object with numerical data and percentages.
"""


def client_states_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate client state monitoring data for {form['clientName']} operating in these states:
{_states(form)}

For each state, generate realistic data including:
- Current revenue amounts
- Threshold amounts
- Compliance status
- Risk levels
- Registration status
- Last updated dates

Annual Revenue: {form['annualRevenue']}
Industry: {form['industry']}

Return as a JSON object with a "clientStates" array of state objects.
"""


def nexus_alerts_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate nexus alerts for {form['clientName']} based on:
- States: {_states(form)}
- Pain Points: {_pain_points(form)}
- Annual Revenue: {form['annualRevenue']}
- Industry: {form['industry']}

Create realistic alerts including:
- Threshold breaches
- Registration deadlines
- Compliance issues
- Risk assessments
- Priority levels
- Current amounts vs thresholds

Return as a JSON object with a "nexusAlerts" array of alert objects.
"""


def nexus_activities_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate nexus activities for {form['clientName']} including:
- Recent compliance activities
- Registration submissions
- Tax filings
- Audit responses
- State communications

Based on states: {_states(form)}
Industry: {form['industry']}

Return as a JSON object with a "nexusActivities" array of activity objects with timestamps.
"""


def alerts_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate general alerts for {form['clientName']} based on:
- Pain Points: {_pain_points(form)}
- Industry: {form['industry']}
- Current Challenges: {form['currentChallenges']}

Include alerts for:
- Compliance deadlines
- Risk notifications
- System issues
- Regulatory changes
- Performance warnings

Return as a JSON object with an "alerts" array of alert objects.
"""


def tasks_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate tasks for {form['clientName']} based on:
- Pain Points: {_pain_points(form)}
- Current Challenges: {form['currentChallenges']}
- States: {_states(form)}

Include tasks for:
- Compliance activities
- Documentation
- Client communications
- System maintenance
- Follow-ups

Return as a JSON object with a "tasks" array of task objects with priorities and due dates.
"""


def analytics_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate analytics data for {form['clientName']} including:
- Performance metrics
- Trend analysis
- Comparative data
- Growth indicators
- Efficiency metrics

Based on:
- Annual Revenue: {form['annualRevenue']}
- Industry: {form['industry']}
- Multi-state operations

Return as a JSON object with realistic analytical data.
"""


def system_health_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate system health data for {form['clientName']}'s dashboard including:
- System performance metrics
- Data processing status
- Integration health
- Security status
- Uptime statistics

Return as a JSON object with realistic system health indicators.
"""


def reports_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate report data for {form['clientName']} including:
- Compliance reports
- Performance summaries
- Risk assessments
- Financial reports
- Audit reports

Based on industry: {form['industry']} and states: {_states(form)}

Return as a JSON object with a "reports" array of report objects.
"""


def communications_prompt(form: Dict[str, Any]) -> str:
    return f"""
Generate communication data for {form['clientName']} including:
- Client communications
- State correspondence
- Internal memos
- Alert notifications
- Follow-up messages

Based on pain points: {_pain_points(form)}

Return as a JSON object with a "communications" array of communication objects.
"""


# ===========================================
# FALLBACKS
# ===========================================

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first_state(form: Dict[str, Any]) -> Optional[str]:
    return form["priorityStates"][0] if form["priorityStates"] else None


def fallback_client_info(form: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": form["clientName"],
        "industry": form["industry"],
        "annualRevenue": form["annualRevenue"],
        "businessModel": form["businessModel"],
        "states": form["priorityStates"],
        "riskLevel": "medium",
        "complianceScore": 85,
    }


def fallback_key_metrics(form: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "totalRevenue": form["annualRevenue"],
        "complianceScore": 85,
        "riskScore": 15,
        "statesMonitored": len(form["priorityStates"]),
        "alertsActive": 3,
        "tasksCompleted": 12,
    }


def fallback_client_states(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "stateCode": state,
            "stateName": STATE_NAMES.get(state, state),
            "currentAmount": random.randint(50_000, 149_999),
            "thresholdAmount": 100_000,
            "status": "monitoring",
            "riskLevel": "medium",
        }
        for state in form["priorityStates"]
    ]


def fallback_nexus_alerts(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{
        "id": "alert-1",
        "stateCode": _first_state(form),
        "title": "Threshold Approaching",
        "priority": "medium",
        "currentAmount": 85_000,
        "thresholdAmount": 100_000,
        "status": "open",
    }]


def fallback_nexus_activities(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{
        "id": "activity-1",
        "stateCode": _first_state(form),
        "activityType": "registration",
        "title": "State Registration Submitted",
        "status": "completed",
        "createdAt": _now_iso(),
    }]


def fallback_alerts(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{
        "id": "alert-1",
        "title": "Compliance Review Due",
        "priority": "high",
        "status": "new",
        "category": "compliance",
    }]


def fallback_tasks(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{
        "id": "task-1",
        "title": "Review State Compliance",
        "priority": "high",
        "status": "pending",
        "dueDate": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
    }]


def fallback_analytics(form: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "totalClients": 1,
        "totalRevenue": form["annualRevenue"],
        "complianceRate": 85,
        "riskScore": 15,
    }


def fallback_system_health(form: Dict[str, Any]) -> Dict[str, Any]:
    return {"status": "healthy", "uptime": 99.9, "performance": "good", "lastCheck": _now_iso()}


def fallback_reports(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{
        "id": "report-1",
        "title": "Monthly Compliance Report",
        "type": "compliance",
        "status": "completed",
        "generatedAt": _now_iso(),
    }]


def fallback_communications(form: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{
        "id": "comm-1",
        "type": "email",
        "subject": "Compliance Update",
        "status": "sent",
        "sentDate": _now_iso(),
    }]


PromptBuilder = Callable[[Dict[str, Any]], str]
Fallback = Callable[[Dict[str, Any]], Any]

# section name -> (prompt builder, fallback, list key the model wraps arrays in)
GENERATORS: Dict[str, tuple] = {
    "clientInfo": (client_info_prompt, fallback_client_info, None),
    "keyMetrics": (key_metrics_prompt, fallback_key_metrics, None),
    "clientStates": (client_states_prompt, fallback_client_states, "clientStates"),
    "nexusAlerts": (nexus_alerts_prompt, fallback_nexus_alerts, "nexusAlerts"),
    "nexusActivities": (nexus_activities_prompt, fallback_nexus_activities, "nexusActivities"),
    "alerts": (alerts_prompt, fallback_alerts, "alerts"),
    "tasks": (tasks_prompt, fallback_tasks, "tasks"),
    "analytics": (analytics_prompt, fallback_analytics, None),
    "systemHealth": (system_health_prompt, fallback_system_health, None),
    "reports": (reports_prompt, fallback_reports, "reports"),
    "communications": (communications_prompt, fallback_communications, "communications"),
}


def _unwrap(result: Any, list_key: Optional[str]) -> Any:
    """json_object mode always returns an object; pull the array back out."""
    if list_key and isinstance(result, dict):
        if isinstance(result.get(list_key), list):
            return result[list_key]
        lists = [v for v in result.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
    return result


class DashboardGenerationService:
    """Runs the section generators concurrently against an LLM."""

    def __init__(self, llm: Optional[Callable[[str], Awaitable[Any]]] = None):
        self.llm = llm or call_llm

    async def generate_section(self, name: str, form: Dict[str, Any]) -> Any:
        prompt_builder, fallback, list_key = GENERATORS[name]
        try:
            result = await self.llm(prompt_builder(form))
            return _unwrap(result, list_key)
        except Exception as e:
            logger.warning(f"Dashboard section '{name}' generation failed, using fallback: {e}")
            return fallback(form)

    async def generate_dashboard_data(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        """Generate every section in parallel and stamp generatedAt."""
        form = normalize_form_data(form_data)
        names = list(GENERATORS)

        logger.info(f"Generating dashboard data for {form['clientName']} ({len(names)} sections)")
        results = await asyncio.gather(*(self.generate_section(name, form) for name in names))

        data = dict(zip(names, results))
        data["generatedAt"] = _now_iso()
        return data

    async def test_connection(self) -> Dict[str, Any]:
        """Round-trip a tiny prompt to confirm the API key and model work."""
        try:
            result = await self.llm('Respond with {"status": "ok"}')
            return {
                "success": True,
                "message": "OpenAI connection successful",
                "model": settings.openai_model,
                "response": result,
            }
        except Exception as e:
            logger.warning(f"OpenAI connection test failed: {e}")
            return {
                "success": False,
                "message": "OpenAI connection failed",
                "model": settings.openai_model,
                "error": str(e),
            }
