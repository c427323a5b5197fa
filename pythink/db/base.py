# pythink/db/base.py
# Import every model so Base.metadata knows all tables.
from pythink.db.base_class import Base  # noqa
from pythink.models.user import User  # noqa
from pythink.models.classroom import Classroom, ClassroomMember, ClassroomProblem  # noqa
from pythink.models.problem import Problem  # noqa
from pythink.models.submission import Submission  # noqa
from pythink.models.conversation import AIConversation, AIUsageLog  # noqa
