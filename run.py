"""Application entry point."""
import os
import click
from flask.cli import with_appcontext
from drive_engine import create_app, db
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Create Flask app
app = create_app(os.getenv('FLASK_ENV', 'development'))

@app.cli.command()
@with_appcontext
def create_admin():
    """Create an admin user."""
    from drive_engine.models.user import User, UserRole

    email = click.prompt('Admin email')
    name = click.prompt('Admin name')
    password = click.prompt('Password', hide_input=True, confirmation_prompt=True)

    if User.query.filter_by(email=email.lower().strip()).first():
        raise click.ClickException(f'User {email} already exists')

    admin = User(email=email.lower().strip(), name=name, role=UserRole.ADMIN)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    click.echo(f'Admin user created: {email}')

@app.cli.command()
@with_appcontext
def reset_db():
    """Reset database completely."""
    if click.confirm('This will delete all data and recreate tables. Continue?'):
        db.drop_all()
        db.create_all()
        click.echo('Database reset complete.')

if __name__ == '__main__':
    # Development server
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '127.0.0.1')
    debug = os.environ.get('FLASK_ENV') == 'development'
    
    app.run(host=host, port=port, debug=debug)
