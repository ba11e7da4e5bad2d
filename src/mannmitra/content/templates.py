"""
Step scripts, canned fallbacks and message templates for activity sessions.

Scripts are keyed by service capability. A session with N steps is mapped
proportionally onto a script, so a 3-step breathing session and a 10-step
check-in can share the same capability script.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

# Service capabilities (one polymorphic service per capability)
CAPABILITY_CONVERSATION = "conversation"
CAPABILITY_COGNITIVE = "cognitive"
CAPABILITY_MINDFULNESS = "mindfulness"
CAPABILITY_ASSESSMENT = "assessment"
CAPABILITY_CRISIS = "crisis"


@dataclass(frozen=True)
class StepScript:
    """One scripted step: what we ask, and how we acknowledge the answer."""
    title: str
    instruction: str
    acknowledgement: str
    guidance: str


# =============================================================================
# STEP SCRIPTS
# =============================================================================

CONVERSATION_SCRIPT: Tuple[StepScript, ...] = (
    StepScript(
        title="Welcome and Check-in",
        instruction="Hello. Let's start by checking in with how you're feeling right now.",
        acknowledgement="Thank you for sharing how you're feeling.",
        guidance="Share whatever feels true for you right now.",
    ),
    StepScript(
        title="Explore Current Concerns",
        instruction="What's been on your mind lately? What brought you here today?",
        acknowledgement="I understand your concerns.",
        guidance="Describe what's been weighing on you, in your own words.",
    ),
    StepScript(
        title="Emotional Validation",
        instruction="I hear you, and what you're experiencing is completely valid. How does it feel to say it out loud?",
        acknowledgement="Your feelings are completely valid.",
        guidance="Notice how it feels to be heard.",
    ),
    StepScript(
        title="Explore Coping Strategies",
        instruction="How have you been managing these feelings? What usually helps you?",
        acknowledgement="It's great that you're thinking about coping strategies.",
        guidance="Think about what has helped you before, even a little.",
    ),
    StepScript(
        title="Next Steps and Support",
        instruction="Based on our conversation, let's think about some next steps that might help.",
        acknowledgement="Let's focus on moving forward.",
        guidance="Pick one small step you could take this week.",
    ),
)

COGNITIVE_SCRIPT: Tuple[StepScript, ...] = (
    StepScript(
        title="Identify the Situation",
        instruction="Think of a recent situation that caused you stress or upset. Describe what happened.",
        acknowledgement="Thank you for sharing that situation. I can understand how that would be stressful.",
        guidance="Describe the situation as objectively as possible.",
    ),
    StepScript(
        title="Recognize Your Thoughts",
        instruction="What thoughts went through your mind during that situation?",
        acknowledgement="Those thoughts are very common. Many people have similar automatic thoughts in stressful situations.",
        guidance="Notice what thoughts automatically came to mind.",
    ),
    StepScript(
        title="Identify Emotions",
        instruction="What emotions did you feel? How intense were they on a scale of 1-10?",
        acknowledgement="It's important to acknowledge these emotions. They're valid responses to your thoughts and situation.",
        guidance="Identify and rate the intensity of your emotions.",
    ),
    StepScript(
        title="Examine the Evidence",
        instruction="Let's look at the evidence. What facts support your thoughts? What facts contradict them?",
        acknowledgement="Good work examining the evidence. This is a key skill in CBT.",
        guidance="Look for facts that support and contradict your thoughts.",
    ),
    StepScript(
        title="Challenge Negative Thoughts",
        instruction="Are there other ways to look at this situation? What would you tell a friend in the same situation?",
        acknowledgement="Excellent! You're developing the ability to see situations from different perspectives.",
        guidance="Consider alternative perspectives on the situation.",
    ),
    StepScript(
        title="Develop Balanced Thoughts",
        instruction="Based on the evidence, what's a more balanced way to think about this situation?",
        acknowledgement="That's a much more balanced way of thinking! This new perspective can help you respond more effectively.",
        guidance="Create a more balanced, realistic thought.",
    ),
    StepScript(
        title="Plan Action Steps",
        instruction="What specific actions can you take to handle similar situations in the future?",
        acknowledgement="Great action plan! Having specific steps makes it easier to handle similar situations.",
        guidance="Plan specific actions you can take.",
    ),
)

MINDFULNESS_SCRIPT: Tuple[StepScript, ...] = (
    StepScript(
        title="Preparation and Settling",
        instruction="Find a comfortable position and take a moment to settle in. Notice how your body feels right now.",
        acknowledgement="Good, you're ready to begin. Your breath is the foundation of mindfulness.",
        guidance="Get comfortable and prepare for mindfulness practice.",
    ),
    StepScript(
        title="Breath Awareness",
        instruction="Begin to notice your natural breathing. Don't change it, just observe each breath in and out.",
        acknowledgement="Wonderful. Your breath is always available as an anchor to the present moment.",
        guidance="Focus on your natural breathing rhythm.",
    ),
    StepScript(
        title="Body Scan",
        instruction="Now gently scan your body from head to toe, noticing any sensations without trying to change them.",
        acknowledgement="Excellent awareness. Notice how your body holds your experiences.",
        guidance="Scan your body with gentle, non-judgmental awareness.",
    ),
    StepScript(
        title="Present Moment Awareness",
        instruction="Expand your awareness to include sounds, thoughts, and feelings, accepting whatever arises.",
        acknowledgement="Beautiful practice. You've cultivated mindful awareness. Take a moment to appreciate this peaceful state.",
        guidance="Accept whatever thoughts and feelings arise.",
    ),
)

ASSESSMENT_SCRIPT: Tuple[StepScript, ...] = (
    StepScript(
        title="Mood Today",
        instruction="On a scale of 1 to 10, how would you rate your mood today?",
        acknowledgement="Thank you, that helps me understand where you are today.",
        guidance="Any number is fine. There are no wrong answers.",
    ),
    StepScript(
        title="Sleep and Energy",
        instruction="How have you been sleeping, and how is your energy during the day?",
        acknowledgement="Sleep and energy tell us a lot about how you're coping.",
        guidance="Think about the past week rather than just last night.",
    ),
    StepScript(
        title="Stress Sources",
        instruction="What has been the biggest source of stress for you recently? Studies, work, family, or something else?",
        acknowledgement="That sounds like a lot to carry.",
        guidance="Name the one that takes up the most space in your mind.",
    ),
    StepScript(
        title="Support System",
        instruction="Who do you usually turn to when things get hard? Family, friends, or someone else?",
        acknowledgement="Knowing who supports you is an important strength.",
        guidance="It's okay if the answer is 'no one right now'.",
    ),
    StepScript(
        title="Goals",
        instruction="If things felt a little better a month from now, what would be different?",
        acknowledgement="That gives us something meaningful to work towards.",
        guidance="Describe one small, concrete change.",
    ),
)

CRISIS_SCRIPT: Tuple[StepScript, ...] = (
    StepScript(
        title="Immediate Safety",
        instruction="I'm here with you. Are you safe right now?",
        acknowledgement="Thank you for telling me. You are not alone in this.",
        guidance="If you are in immediate danger, please call a helpline or emergency services now.",
    ),
    StepScript(
        title="Grounding",
        instruction="Let's slow things down together. Take a slow breath in for 4 counts, and out for 6.",
        acknowledgement="Good. Stay with your breath for a moment longer.",
        guidance="Breathe slowly and notice your feet on the ground.",
    ),
    StepScript(
        title="Reaching Out",
        instruction="Is there someone you trust, a family member or friend, who you could contact right now?",
        acknowledgement="Reaching out to someone you trust is a strong and brave step.",
        guidance="Think of one person you could call or message today.",
    ),
    StepScript(
        title="Safety Plan",
        instruction="Let's make a simple plan for the next few hours. What is one thing that would help you stay safe?",
        acknowledgement="That's a good plan. Please keep the helpline numbers close.",
        guidance="Write down your plan and the helpline numbers.",
    ),
)

STEP_SCRIPTS: Dict[str, Tuple[StepScript, ...]] = {
    CAPABILITY_CONVERSATION: CONVERSATION_SCRIPT,
    CAPABILITY_COGNITIVE: COGNITIVE_SCRIPT,
    CAPABILITY_MINDFULNESS: MINDFULNESS_SCRIPT,
    CAPABILITY_ASSESSMENT: ASSESSMENT_SCRIPT,
    CAPABILITY_CRISIS: CRISIS_SCRIPT,
}


# =============================================================================
# FALLBACKS
# =============================================================================

FALLBACK_MESSAGES: Dict[str, str] = {
    CAPABILITY_CONVERSATION: (
        "I'm here with you. Take your time, and share whatever feels right."
    ),
    CAPABILITY_COGNITIVE: (
        "Let's take this one step at a time. What thought stands out most to you right now?"
    ),
    CAPABILITY_MINDFULNESS: (
        "Let's pause and take a slow, gentle breath together. Notice the air moving in and out."
    ),
    CAPABILITY_ASSESSMENT: (
        "Thank you for sharing. Whenever you're ready, we can continue the check-in."
    ),
    CAPABILITY_CRISIS: (
        "I'm here with you, and your safety matters. Please reach out to someone you trust "
        "or call a helpline right now."
    ),
}

GENERIC_FALLBACK = (
    "I'm here to support you. Let's take a moment together before we continue."
)

EMPTY_INPUT_MESSAGE = (
    "I didn't quite catch that. Could you share a bit more about how you're feeling?"
)

COMPLETION_MESSAGE = (
    "We've reached the end of this activity. Thank you for taking this time for yourself."
)

RESUME_MESSAGE = "Welcome back. Let's pick up where we left off."


# =============================================================================
# CRISIS SUPPORT
# =============================================================================

HELPLINES: List[Dict[str, str]] = [
    {"name": "Vandrevala Foundation", "phone": "9999 666 555"},
    {"name": "AASRA", "phone": "91-22-27546669"},
]

CRISIS_SUPPORT_MESSAGE = (
    "I'm really concerned about what you've shared, and I want you to be safe. "
    "You don't have to go through this alone. Please reach out now: "
    + "; ".join(f"{h['name']}: {h['phone']}" for h in HELPLINES)
    + "."
)


# =============================================================================
# RECOMMENDATION RATIONALE
# =============================================================================

STATE_REASONS: Dict[str, str] = {
    "stressed": "to help reduce your current stress levels",
    "anxious": "to provide anxiety relief and calming techniques",
    "depressed": "to improve your mood and energy levels",
    "overwhelmed": "to help you regain control and clarity",
    "angry": "to help process and manage your emotions",
}

URGENCY_REASONS: Dict[str, str] = {
    "immediate": "for immediate support and stabilization",
    "high": "for quick relief and emotional regulation",
}

DEFAULT_REASON = "based on your preferences and current needs"


# =============================================================================
# NARRATION PROMPT
# =============================================================================

NARRATION_PROMPT = (
    "You are MannMitra, a warm mental-wellness companion for Indian users.\n"
    "Activity: {activity_name} (step {step} of {total_steps}: {title}).\n"
    "Difficulty: {difficulty}. Cultural notes: {cultural_notes}.\n"
    "The user just said: \"{user_input}\"\n"
    "Acknowledge them briefly, then guide them into this step: {instruction}\n"
    "Keep it under 80 words, gentle and non-judgmental. Do not diagnose."
)
