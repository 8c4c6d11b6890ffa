#!/usr/bin/env python3
"""
Inquiry Router CLI

USAGE:
    python scripts/process_email.py process inquiry.eml [more.eml ...]
    python scripts/process_email.py process-json webhook_payload.json
    python scripts/process_email.py assign <task_id> <sales_rep_id> --by "Jane Manager"
    python scripts/process_email.py qualify <lead_task_id> --by "Jane Manager" --notes "Budget confirmed"
    python scripts/process_email.py pending
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from src.services.email.intake import EmailIntakeService, create_email_intake_service
from src.services.leads import QualificationData


async def cmd_process(service: EmailIntakeService, args) -> int:
    failures = 0
    for path in args.files:
        print(f"\n📧 Processing {path}")
        try:
            result = await service.process_file_email(path)
        except Exception as e:
            print(f"❌ Failed: {e}")
            failures += 1
            continue
        print(json.dumps(result, indent=2, default=str))
    return 1 if failures else 0


async def cmd_process_json(service: EmailIntakeService, args) -> int:
    with open(args.payload, 'r', encoding='utf-8') as f:
        payload = json.load(f)
    result = await service.process_email(payload)
    print(json.dumps(result, indent=2, default=str))
    return 0


async def cmd_assign(service: EmailIntakeService, args) -> int:
    ok = await service.pipeline.router.manually_assign_sales_rep(args.task_id, args.sales_rep_id, args.by)
    print("✅ Task assigned" if ok else "❌ Assignment failed, see log for details")
    return 0 if ok else 1


async def cmd_qualify(service: EmailIntakeService, args) -> int:
    qualification = QualificationData(
        qualified_by=args.by,
        notes=args.notes,
        budget=args.budget,
        timeline=args.timeline,
        decision_maker=args.decision_maker,
    )
    contact = await service.pipeline.leads.move_lead_to_contacts(args.lead_task_id, qualification)
    print(f"✅ Lead moved to contacts: {contact['id']}")
    return 0


async def cmd_pending(service: EmailIntakeService, args) -> int:
    tasks = await service.pipeline.router.get_tasks_needing_assignment()
    print(f"\n📋 Tasks needing assignment: {len(tasks)}")
    for task in tasks:
        reason = (task.get('custom_fields') or {}).get('assignment_failure_reason', '')
        print(f"  - {task['id']} {task.get('title')} [{task.get('status')}] {reason}")

    leads = await service.pipeline.leads.get_leads_needing_qualification()
    print(f"\n📋 Leads needing qualification: {len(leads)}")
    for lead in leads:
        print(f"  - {lead['id']} {lead.get('title')} <{lead.get('sender_email')}>")
    return 0


COMMANDS = {
    'process': cmd_process,
    'process-json': cmd_process_json,
    'assign': cmd_assign,
    'qualify': cmd_qualify,
    'pending': cmd_pending,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Route inbound email inquiries to sales reps')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('process', help='Process .eml files')
    p.add_argument('files', nargs='+')

    p = sub.add_parser('process-json', help='Process a webhook payload saved as JSON')
    p.add_argument('payload')

    p = sub.add_parser('assign', help='Manually assign a sales rep to a task')
    p.add_argument('task_id')
    p.add_argument('sales_rep_id')
    p.add_argument('--by', required=True, help='Who is making the assignment')

    p = sub.add_parser('qualify', help='Qualify a lead and move it to contacts')
    p.add_argument('lead_task_id')
    p.add_argument('--by', default='Sales Rep')
    p.add_argument('--notes')
    p.add_argument('--budget')
    p.add_argument('--timeline')
    p.add_argument('--decision-maker')

    sub.add_parser('pending', help='List tasks needing assignment and leads needing qualification')
    return parser


async def run(args) -> int:
    service = await create_email_intake_service()
    return await COMMANDS[args.command](service, args)


def main():
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == '__main__':
    main()
