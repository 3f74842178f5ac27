"""
Prompt text for the planning, synthesis, edit and identification calls
"""
from typing import List

from services.plan_parser import DELIMITED_FORMAT
from services.staging_models import DesignPlan, LocationInput, QueryLocation

# How far each concept may go in replacing the existing furniture, by position
FURNITURE_REPLACEMENT_LEVELS = [
    "Keep every existing piece of furniture. Restyle it only through arrangement, textiles, lighting, plants and decor.",
    "Keep the main pieces of furniture. You may replace up to two secondary pieces (e.g. side tables, chairs, lamps) and add decor.",
]


class StagingPrompts:
    """Builders for every prompt the staging services send"""

    @staticmethod
    def planning_system_instruction(design_count: int, plan_format: str) -> str:
        concept_word = "concept" if design_count == 1 else f"{design_count} distinct concepts"
        lines = [
            "You are an expert interior designer doing virtual staging of a real room photo.",
            f"Propose {concept_word} for redesigning the room in the image.",
            "",
            "HARD CONSTRAINTS for every concept:",
            "- Do NOT change the room's structure: walls, windows, doors, floor plan, ceiling and camera angle stay exactly as they are.",
            "- Reuse the existing furniture wherever possible.",
            "- Only suggest items a person could realistically buy in local stores.",
            "",
        ]
        for index in range(design_count):
            level = FURNITURE_REPLACEMENT_LEVELS[min(index, len(FURNITURE_REPLACEMENT_LEVELS) - 1)]
            lines.append(f"Concept {index + 1} furniture rule: {level}")
        lines.append("")

        if plan_format == DELIMITED_FORMAT:
            lines.append("You MUST format your response using the following markers and nothing else:")
            for n in range(1, design_count + 1):
                lines.extend(["", f"##T{n}##", f"[Title for Design {n}]", "", f"##D{n}##", f"[Description for Design {n}]"])
        else:
            lines.extend(
                [
                    "Respond with a single JSON object and nothing else, in this exact shape:",
                    '{"designs": [{"title": "...", "description": "...", "imagePrompt": "..."}]}',
                    f'The "designs" array MUST contain exactly {design_count} '
                    f'entr{"y" if design_count == 1 else "ies"}.',
                    '"imagePrompt" is a self-contained instruction for an image model to restage the photo in that concept.',
                ]
            )
        return "\n".join(lines)

    @staticmethod
    def planning_user_prompt(design_count: int, location: LocationInput) -> List[str]:
        plural = "concept" if design_count == 1 else "concepts"
        prompts = [f"Analyze this room and provide {design_count} redesign {plural} as instructed."]
        if isinstance(location, QueryLocation):
            prompts.append(f'User location query: "{location.query}"')
        if location is not None:
            prompts.append("Use the map tool to find furniture and decor stores near the user's location.")
        return prompts

    @staticmethod
    def design_image_prompt(plan: DesignPlan) -> str:
        if plan.image_prompt:
            base = plan.image_prompt
        else:
            base = (
                f"Generate a photorealistic image of the provided room, but redesigned in a '{plan.title}' style. "
                f"The new design should incorporate these elements: {plan.description}"
            )
        return (
            f"{base}\n\n"
            "The input is letterboxed: keep any solid padding bars exactly as they are and only restyle the photo area. "
            "Do not change walls, windows, doors or the camera angle."
        )

    @staticmethod
    def identification_prompt(location: LocationInput) -> str:
        prompt = (
            "Identify the main furniture and decor items visible in this room image. "
            "For each item give a bounding box as fractions (0 to 1) of the image width and height, "
            "and up to three products a shopper could buy to recreate it.\n"
            "Respond with a single JSON object and nothing else, in this exact shape:\n"
            '{"objects": [{"objectName": "...", '
            '"boundingBox": {"top": 0.0, "left": 0.0, "width": 0.0, "height": 0.0}, '
            '"products": [{"productName": "...", "storeName": "...", "productUrl": "..."}]}]}'
        )
        if isinstance(location, QueryLocation):
            prompt += f'\nPrefer stores near: "{location.query}"'
        elif location is not None:
            prompt += "\nPrefer stores near the user's coordinates."
        return prompt
