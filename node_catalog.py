"""
Static catalog of commonly used n8n node types.
"""
from typing import Literal, NamedTuple

NodeCategory = Literal["trigger", "action", "logic", "transform", "ai", "all"]


class NodeType(NamedTuple):
    type: str
    name: str
    category: str
    description: str


CATALOG = [
    NodeType("n8n-nodes-base.manualTrigger", "Manual Trigger", "trigger",
             "Start workflow manually from n8n UI"),
    NodeType("n8n-nodes-base.scheduleTrigger", "Schedule Trigger", "trigger",
             "Cron-based scheduling. Params: rule.interval[].field='cronExpression', expression='0 9 * * *'"),
    NodeType("n8n-nodes-base.webhook", "Webhook", "trigger",
             "HTTP webhook endpoint. Params: path='/my-hook', httpMethod='POST'"),
    NodeType("n8n-nodes-base.emailTrigger", "Email Trigger (IMAP)", "trigger",
             "Trigger on new emails via IMAP"),
    NodeType("n8n-nodes-base.httpRequest", "HTTP Request", "action",
             "Make HTTP requests. Params: url, method, headers, body"),
    NodeType("n8n-nodes-base.emailSend", "Send Email", "action",
             "Send emails via SMTP. Params: fromEmail, toEmail, subject, text"),
    NodeType("n8n-nodes-base.slack", "Slack", "action", "Send messages to Slack channels"),
    NodeType("n8n-nodes-base.telegram", "Telegram", "action", "Send messages via Telegram bot"),
    NodeType("n8n-nodes-base.googleSheets", "Google Sheets", "action", "Read/write Google Sheets data"),
    NodeType("n8n-nodes-base.if", "IF", "logic",
             "Conditional routing. Two outputs: true (index 0) and false (index 1)"),
    NodeType("n8n-nodes-base.switch", "Switch", "logic", "Multi-path routing based on conditions"),
    NodeType("n8n-nodes-base.merge", "Merge", "logic", "Merge data from multiple branches"),
    NodeType("n8n-nodes-base.set", "Set", "transform", "Set/modify data fields"),
    NodeType("n8n-nodes-base.code", "Code", "transform",
             "Execute custom JavaScript. Params: jsCode='return items;'"),
    NodeType("n8n-nodes-base.splitInBatches", "Split In Batches", "transform", "Process items in batches"),
    NodeType("n8n-nodes-base.aggregate", "Aggregate", "transform", "Aggregate multiple items into one"),
    NodeType("@n8n/n8n-nodes-langchain.agent", "AI Agent", "ai", "LangChain-based AI agent with tools"),
    NodeType("@n8n/n8n-nodes-langchain.chainLlm", "LLM Chain", "ai", "Simple LLM chain for text generation"),
    NodeType("@n8n/n8n-nodes-langchain.openAi", "OpenAI", "ai", "Direct OpenAI API integration"),
]


def describe(category: NodeCategory = "all") -> str:
    nodes = CATALOG if category == "all" else [n for n in CATALOG if n.category == category]
    lines = [f"n8n Node Types ({category}):\n"]
    for node in nodes:
        lines.append(f"  [{node.category.upper()}] {node.type}")
        lines.append(f"    Name: {node.name}")
        lines.append(f"    {node.description}\n")
    return "\n".join(lines)
