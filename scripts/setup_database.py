#!/usr/bin/env python3
"""
Database Setup Script for the Inquiry Router

Verifies that the tables the inquiry pipeline needs exist in Supabase and
optionally seeds a sales representative so inquiries can be assigned.
The schema itself is in supabase/migrations/001_inquiry_pipeline.sql.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from config import settings
from src.services.store import SupabaseStore, create_supabase_store

REQUIRED_TABLES = ['boards', 'groups', 'tasks', 'users', 'activity_log']
MIGRATION_FILE = Path(__file__).parent.parent / 'supabase' / 'migrations' / '001_inquiry_pipeline.sql'


class DatabaseSetup:
    def __init__(self, store: SupabaseStore):
        self.store = store

    async def verify_setup(self) -> bool:
        """Verify all tables exist and are accessible"""
        print("\n🔍 Verifying database setup...")
        all_good = True

        for table in REQUIRED_TABLES:
            try:
                await self.store.find(table, columns='id', limit=1)
                print(f"✅ Table '{table}' is accessible")
            except Exception as e:
                print(f"❌ Table '{table}' is not accessible: {str(e)}")
                all_good = False

        return all_good

    async def seed_sales_rep(self, fullname: str, email: str) -> bool:
        """Add a sales representative unless one with the same email exists"""
        print(f"\n🌱 Seeding sales rep {fullname} <{email}>...")

        existing = await self.store.find_one('users', {'email': email.lower()}, columns='id')
        if existing:
            print(f"ℹ️  Sales rep already exists: {existing['id']}")
            return True

        rep = await self.store.insert('users', {
            'fullname': fullname,
            'email': email.lower(),
            'role': settings.SALES_ROLE,
        })
        print(f"✅ Added sales rep: {rep['id']}")
        return True


def print_manual_instructions():
    print("\n⚠️  Tables need to be created manually in Supabase dashboard")
    print("\n📝 Instructions:")
    print("1. Go to your Supabase project dashboard")
    print("2. Navigate to the SQL Editor")
    print(f"3. Copy and paste the contents of: {MIGRATION_FILE.relative_to(MIGRATION_FILE.parents[2])}")
    print("4. Click 'Run' to execute the schema")
    print("\nAfterwards, run this script again to verify the setup.")


async def run(args) -> int:
    setup = DatabaseSetup(await create_supabase_store(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY))

    if not await setup.verify_setup():
        print_manual_instructions()
        return 1

    print("\n✅ Database setup complete!")
    if args.seed_rep_email:
        await setup.seed_sales_rep(args.seed_rep_name, args.seed_rep_email)
    return 0


def main():
    parser = argparse.ArgumentParser(description='Verify the inquiry router database schema')
    parser.add_argument('--seed-rep-email', help='Email of a sales rep to seed')
    parser.add_argument('--seed-rep-name', default='Sales Representative', help='Full name of the seeded rep')
    args = parser.parse_args()

    print("🚀 Inquiry Router Database Setup")
    print("=" * 50)

    try:
        sys.exit(asyncio.run(run(args)))
    except ValueError as e:
        print(f"\n❌ Setup failed: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    main()
