from concierge.agents.base_agent import SlotFillingAgent
from concierge.agents.booking_agent import BookingAgent
from concierge.agents.lead_agent import LeadAgent
from concierge.agents.menu_agent import MenuAgent
from concierge.agents.router import AgentRouter

__all__ = ["SlotFillingAgent", "LeadAgent", "BookingAgent", "MenuAgent", "AgentRouter"]
