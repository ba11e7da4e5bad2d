"""
Default activity catalog for MannMitra.

Each entry is a short, structured therapeutic exercise. Cultural relevance
scores reflect fit for an Indian, Hindi/English-speaking audience.
"""

from __future__ import annotations

from typing import List

from ..core.models import ActivityMetadata, BEGINNER, INTERMEDIATE, ADVANCED

ALL_LEVELS = (BEGINNER, INTERMEDIATE, ADVANCED)

# Categories understood by the recommendation tables and service selection
CATEGORY_MINDFULNESS = "mindfulness"
CATEGORY_CBT = "cbt"
CATEGORY_ASSESSMENT = "assessment"
CATEGORY_CRISIS = "crisis"
CATEGORY_CULTURAL = "cultural"
CATEGORY_BEHAVIORAL = "behavioral"
CATEGORY_CONVERSATION = "conversation"
CATEGORIES = (
    CATEGORY_MINDFULNESS,
    CATEGORY_CBT,
    CATEGORY_ASSESSMENT,
    CATEGORY_CRISIS,
    CATEGORY_CULTURAL,
    CATEGORY_BEHAVIORAL,
    CATEGORY_CONVERSATION,
)


DEFAULT_ACTIVITIES: List[ActivityMetadata] = [
    ActivityMetadata(
        activity_type="mindfulness_session",
        name="Mindfulness Session",
        description="Guided mindfulness and breathing practice for stress reduction and emotional regulation.",
        category=CATEGORY_MINDFULNESS,
        cultural_relevance=9,
        difficulty_levels=ALL_LEVELS,
        durations=(5, 10, 15, 20, 30),
        therapeutic_goals=("stress_reduction", "emotional_regulation", "present_moment_awareness"),
        skills_targeted=("mindful_breathing", "body_awareness", "emotional_observation"),
        base_steps=5,
    ),
    ActivityMetadata(
        activity_type="guided_conversation",
        name="Guided Therapeutic Conversation",
        description="A structured supportive conversation for emotional expression and insight.",
        category=CATEGORY_CONVERSATION,
        cultural_relevance=8,
        difficulty_levels=ALL_LEVELS,
        durations=(15, 20, 30, 45),
        therapeutic_goals=("emotional_expression", "insight_development", "problem_solving"),
        skills_targeted=("emotional_awareness", "communication", "self_reflection"),
        base_steps=8,
    ),
    ActivityMetadata(
        activity_type="cbt_exercise",
        name="Cognitive Behavioral Exercise",
        description="Structured CBT exercise for noticing thoughts and practising behavioural change.",
        category=CATEGORY_CBT,
        cultural_relevance=7,
        difficulty_levels=ALL_LEVELS,
        durations=(10, 15, 20, 30),
        therapeutic_goals=("cognitive_restructuring", "behavioral_change", "mood_improvement"),
        skills_targeted=("thought_challenging", "behavioral_experiments", "mood_monitoring"),
        base_steps=6,
    ),
    ActivityMetadata(
        activity_type="assessment_activity",
        name="Wellbeing Check-in",
        description="A gentle structured check-in on current mental health status and needs.",
        category=CATEGORY_ASSESSMENT,
        cultural_relevance=8,
        difficulty_levels=(BEGINNER,),
        durations=(15, 20, 30),
        therapeutic_goals=("assessment", "goal_setting", "treatment_planning"),
        skills_targeted=("self_awareness", "goal_identification"),
        base_steps=10,
    ),
    ActivityMetadata(
        activity_type="crisis_intervention",
        name="Crisis Support Session",
        description="Immediate stabilisation, safety planning and connection to help.",
        category=CATEGORY_CRISIS,
        cultural_relevance=9,
        difficulty_levels=(BEGINNER,),
        durations=(10, 15, 20),
        therapeutic_goals=("crisis_stabilization", "safety_planning", "immediate_support"),
        skills_targeted=("crisis_coping", "safety_awareness", "help_seeking"),
        contraindications=("severe_psychosis", "active_substance_use"),
        base_steps=4,
    ),
    ActivityMetadata(
        activity_type="breathing_exercise",
        name="Breathing Exercise",
        description="Simple breathing techniques for immediate stress relief.",
        category=CATEGORY_MINDFULNESS,
        cultural_relevance=10,
        difficulty_levels=(BEGINNER, INTERMEDIATE),
        durations=(3, 5, 10),
        therapeutic_goals=("stress_reduction", "anxiety_management"),
        skills_targeted=("breathing_techniques", "relaxation"),
        base_steps=3,
    ),
    ActivityMetadata(
        activity_type="journaling_prompt",
        name="Guided Journaling",
        description="Structured journaling prompts for self-reflection and emotional processing.",
        category=CATEGORY_BEHAVIORAL,
        cultural_relevance=7,
        difficulty_levels=ALL_LEVELS,
        durations=(10, 15, 20),
        therapeutic_goals=("self_reflection", "emotional_processing", "insight_development"),
        skills_targeted=("written_expression", "self_analysis", "pattern_recognition"),
        base_steps=4,
    ),
    ActivityMetadata(
        activity_type="mood_tracking",
        name="Mood Tracking Session",
        description="Interactive mood rating and reflection for spotting patterns over time.",
        category=CATEGORY_ASSESSMENT,
        cultural_relevance=8,
        difficulty_levels=(BEGINNER,),
        durations=(5, 10),
        therapeutic_goals=("mood_awareness", "pattern_recognition", "self_monitoring"),
        skills_targeted=("emotional_awareness", "self_monitoring", "data_interpretation"),
        base_steps=3,
    ),
    ActivityMetadata(
        activity_type="thought_challenge",
        name="Thought Challenging Exercise",
        description="Identify and challenge negative thought patterns with evidence.",
        category=CATEGORY_CBT,
        cultural_relevance=6,
        difficulty_levels=(INTERMEDIATE, ADVANCED),
        durations=(15, 20, 25),
        therapeutic_goals=("cognitive_restructuring", "negative_thought_reduction"),
        skills_targeted=("thought_identification", "evidence_evaluation", "balanced_thinking"),
        prerequisites=("cbt_exercise",),
        base_steps=5,
    ),
    ActivityMetadata(
        activity_type="grounding_technique",
        name="Grounding Techniques",
        description="Sensory grounding exercises for anxiety and feeling disconnected.",
        category=CATEGORY_MINDFULNESS,
        cultural_relevance=9,
        difficulty_levels=(BEGINNER, INTERMEDIATE),
        durations=(5, 10, 15),
        therapeutic_goals=("anxiety_reduction", "present_moment_awareness", "emotional_regulation"),
        skills_targeted=("sensory_awareness", "grounding_techniques", "anxiety_management"),
        base_steps=4,
    ),
]
