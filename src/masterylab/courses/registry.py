"""Course discovery and registry."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from masterylab.engine.item_bank import CourseMeta, ItemBank, load_course, load_item_bank


class CourseRegistry:
    """Discovers and loads courses from the courses directory."""

    def __init__(self, courses_dir: Path | None = None):
        self.courses_dir = courses_dir or (
            Path(__file__).parent
        )

    def list_courses(self) -> list[CourseMeta]:
        """Discover all courses with a course.yaml."""
        courses = []
        for path in sorted(self.courses_dir.iterdir()):
            if path.is_dir() and (path / "course.yaml").exists():
                try:
                    courses.append(load_course(path))
                except Exception as e:
                    logger.warning(f"Skipping course at {path}: {e}")
        return courses

    def get_course(self, course_id: str) -> CourseMeta | None:
        for course in self.list_courses():
            if course.id == course_id:
                return course
        return None

    def load_bank(self, course: CourseMeta) -> ItemBank:
        course_dir = course.base_path or (self.courses_dir / course.id)
        return load_item_bank(course_dir, course)
