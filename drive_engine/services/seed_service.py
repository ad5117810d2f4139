"""Database seeding service for a demo drive."""
from flask import current_app

from drive_engine import db
from drive_engine.models.job import Job
from drive_engine.models.user import User, UserRole
from drive_engine.services.round_service import RoundService

class SeedService:
    """Service to seed database with a demo drive."""
    
    DEMO_ROUNDS = ['Aptitude Test', 'Technical Interview', 'HR Interview']
    
    @staticmethod
    def seed_all():
        """Seed users and a job with three rounds."""
        SeedService.seed_users()
        return SeedService.seed_drive()
    
    @staticmethod
    def seed_users():
        """Seed one admin and two students."""
        users = [
            ('Placement Admin', 'admin@placement.edu', 'admin123456', UserRole.ADMIN, None),
            ('Asha Rao', 'asha@student.edu', 'student123', UserRole.STUDENT, '1XX21CS001'),
            ('Vikram Shetty', 'vikram@student.edu', 'student123', UserRole.STUDENT, '1XX21CS002'),
        ]
        created = 0
        for name, email, password, role, usn in users:
            if User.query.filter_by(email=email).first():
                continue
            user = User(email=email, name=name, role=role, usn=usn)
            user.set_password(password)
            db.session.add(user)
            created += 1
        db.session.commit()
        current_app.logger.info('Seeded %d users', created)
    
    @staticmethod
    def seed_drive() -> Job:
        """Seed a demo job with ordered rounds."""
        job = Job.query.filter_by(title='Graduate Engineer Trainee').first()
        if job:
            return job
        
        job = Job(title='Graduate Engineer Trainee', company_name='Acme Systems')
        db.session.add(job)
        db.session.commit()
        
        for order, name in enumerate(SeedService.DEMO_ROUNDS, start=1):
            RoundService.create_round(job.id, name, order)
        
        current_app.logger.info('Seeded job %s with %d rounds', job.id, len(SeedService.DEMO_ROUNDS))
        return job
