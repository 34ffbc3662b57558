from sqlalchemy import BigInteger, Column, Integer, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class GitHubIssue(Base):
    __tablename__ = "github_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # GitHub issue ids are past the 32-bit range
    issue_id = Column(BigInteger, nullable=False)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer)
    title = Column(Text)
    question_body = Column(Text)
    answer_body = Column(Text)
