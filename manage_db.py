#!/usr/bin/env python3
"""
Database management script for deployment.
Creates the back office tables; optionally loads a player directory CSV.

Usage:
    python manage_db.py                      # create tables
    python manage_db.py players.csv          # create tables and import players
"""
import csv
import sys

from backoffice.app import create_app
from backoffice.models import db, Player


def import_players(path: str) -> int:
    """Upsert players from a CSV with player_id,name,contact_email columns."""
    count = 0
    with open(path, newline='') as f:
        for row in csv.DictReader(f):
            player = Player.query.filter_by(player_id=row['player_id']).first()
            if player is None:
                player = Player(player_id=row['player_id'])
                db.session.add(player)
            player.name = row['name']
            player.contact_email = row.get('contact_email') or None
            count += 1
    db.session.commit()
    return count


def deploy(players_csv: str = None):
    """Run deployment tasks."""
    print("Creating database tables...")
    app = create_app()
    with app.app_context():
        try:
            db.create_all()
            print("Database tables ready.")
            if players_csv:
                print(f"Imported {import_players(players_csv)} players.")
        except Exception as e:
            print(f"Error preparing database: {e}")
            sys.exit(1)


if __name__ == '__main__':
    deploy(sys.argv[1] if len(sys.argv) > 1 else None)
