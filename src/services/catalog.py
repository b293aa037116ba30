"""
Static catalog shown in the workflow builder: trigger kinds, action kinds,
starter templates and ERP modules. Actions the engine cannot run yet are
listed with implemented=False.
"""
from src.services.actions import ActionType

TRIGGERS = {
    "webhook": {
        "name": "Webhook",
        "description": "Trigger workflow via HTTP webhook",
        "category": "developer",
        "parameters": ["method", "path", "authentication"],
    },
    "email": {
        "name": "Email Received",
        "description": "Trigger when email is received",
        "category": "communication",
        "parameters": ["email_address", "subject_filter"],
    },
    "form_submission": {
        "name": "Form Submission",
        "description": "Trigger when form is submitted",
        "category": "marketing",
        "parameters": ["form_id", "field_filters"],
    },
    "api_call": {
        "name": "API Call",
        "description": "Trigger via API endpoint",
        "category": "developer",
        "parameters": ["endpoint", "method", "headers"],
    },
    "schedule": {
        "name": "Schedule",
        "description": "Trigger on a schedule",
        "category": "automation",
        "parameters": ["frequency", "time", "timezone"],
    },
    "database_change": {
        "name": "Database Change",
        "description": "Trigger when database records change",
        "category": "data",
        "parameters": ["table", "operation", "conditions"],
    },
}

ACTIONS = {
    "send_email": {
        "name": "Send Email",
        "category": "communication",
        "parameters": ["to", "subject", "body"],
    },
    "create_task": {
        "name": "Create Task",
        "category": "productivity",
        "parameters": ["title", "description", "assignee", "due_date", "priority"],
    },
    "update_record": {
        "name": "Update Record",
        "category": "data",
        "parameters": ["table", "record_id", "fields"],
    },
    "api_request": {
        "name": "API Request",
        "category": "developer",
        "parameters": ["url", "method", "headers", "body"],
    },
    "conditional_logic": {
        "name": "Conditional Logic",
        "category": "logic",
        "parameters": ["conditions"],
    },
    "delay": {
        "name": "Delay",
        "category": "flow",
        "parameters": ["duration", "unit"],
    },
    "send_sms": {
        "name": "Send SMS",
        "category": "communication",
        "parameters": ["phone_number", "message"],
    },
    "create_invoice": {
        "name": "Create Invoice",
        "category": "finance",
        "parameters": ["customer_id", "amount", "description", "due_date"],
    },
    "social_post": {
        "name": "Social Media Post",
        "category": "marketing",
        "parameters": ["platform", "content", "image", "schedule"],
    },
    "file_upload": {
        "name": "File Upload",
        "category": "storage",
        "parameters": ["file", "destination", "folder"],
    },
}

TEMPLATES = {
    "lead_nurturing": {
        "name": "Lead Nurturing Automation",
        "description": "Automate lead capture and nurturing campaigns",
        "steps": ["webhook", "lead_scoring", "email_sequence", "crm_sync"],
    },
    "order_fulfillment": {
        "name": "Order Fulfillment Workflow",
        "description": "Streamline order processing and fulfillment",
        "steps": ["order_webhook", "inventory_check", "payment_verify", "shipping_notification"],
    },
    "customer_support": {
        "name": "Customer Support Automation",
        "description": "Automate customer support ticket routing",
        "steps": ["support_ticket", "priority_check", "agent_assignment", "response_template"],
    },
    "social_media": {
        "name": "Social Media Management",
        "description": "Automate social media posting and engagement",
        "steps": ["content_scheduler", "multi_platform_post", "engagement_tracking", "analytics_report"],
    },
}

MODULES = {
    "ecommerce": "Ecommerce",
    "customers": "Customer Management",
    "inventory": "Inventory",
    "finance": "Finance & Accounting",
    "communication": "Communication",
    "marketing": "Marketing",
    "support": "Customer Support",
    "procurement": "Procurement",
    "project_management": "Project Management",
    "analytics": "Analytics",
}


def get_catalog() -> dict:
    implemented = {action_type.value for action_type in ActionType}
    actions = {
        key: {**entry, "implemented": key in implemented}
        for key, entry in ACTIONS.items()
    }
    return {
        "triggers": TRIGGERS,
        "actions": actions,
        "templates": TEMPLATES,
        "modules": MODULES,
    }
